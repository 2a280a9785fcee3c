"""Place a phone call from a chat command."""
import re

from callbridge.actions.base import Action, ActionResult, map_delivery_error
from callbridge.core.logging import get_logger
from callbridge.services.runtime.base import AgentRuntime, ModelClass
from callbridge.services.voice.constants import VOICE_STOP_SEQUENCES
from callbridge.services.voice.handler import VoiceSessionHandler
from callbridge.services.voice.prompts import get_call_opening_prompt

logger = get_logger(__name__)

# "Call +1234567890 and tell them about the latest updates"
CALL_PATTERN = re.compile(
    r"(?:call|dial|phone|reach|contact) (\+\d{10,15}) (?:and|to)? ?(?:tell|say) (?:them|about|that)? ?(.*)",
    re.IGNORECASE,
)

PERMISSION_MESSAGE = "Sorry, I don't have permission to call this number. It might need to be verified first."


class CallAction(Action):
    """Calls a number and opens the conversation with a generated line about the topic."""

    name = "call"
    description = "Make a phone call using Twilio"
    similes = [
        "CALL", "PHONE", "DIAL", "RING",
        "MAKE_CALL", "PLACE_CALL", "REACH_OUT",
        "GET_ON_PHONE", "CONTACT_BY_PHONE",
    ]

    def __init__(self, voice_handler: VoiceSessionHandler):
        self.voice_handler = voice_handler

    def validate(self, text: str) -> bool:
        return bool(text) and CALL_PATTERN.search(text) is not None

    async def handle(self, runtime: AgentRuntime, text: str) -> ActionResult:
        match = CALL_PATTERN.search(text or "")
        if not match:
            return ActionResult(success=False, message="Invalid call command format")

        phone_number, topic = match.group(1), match.group(2).strip()

        try:
            opening = await runtime.generate_text(
                get_call_opening_prompt(topic, runtime.character),
                model_class=ModelClass.MEDIUM,
                stop=VOICE_STOP_SEQUENCES,
            )
            logger.info(f"[CALL ACTION] Generated call opening - Length: {len(opening)}")

            call_sid = await self.voice_handler.initiate_call(phone_number, opening, runtime, topic)
        except Exception as e:
            logger.error(f"[CALL ACTION] Failed to make call - Error: {type(e).__name__}: {str(e)}")
            result = map_delivery_error(e, PERMISSION_MESSAGE)
            if result is None:
                raise
            return result

        return ActionResult(
            success=True,
            message=f"Call initiated to {phone_number} (Call SID: {call_sid})",
            call_sid=call_sid,
        )
