"""SMS reply handler."""
import re
from typing import Optional

from callbridge.core.errors import CallbridgeError, ConfigurationError, SessionNotFoundError
from callbridge.core.logging import get_logger
from callbridge.services.conversation.memory import ConversationMemory
from callbridge.services.runtime.base import AgentRuntime, ModelClass
from callbridge.services.runtime.character import Character
from callbridge.services.telephony.twilio_client import TwilioService
from callbridge.services.text import truncate_to_complete_sentence

logger = get_logger(__name__)

SMS_MAX_LENGTH = 160

# Stop at the first period: one sentence per text
SMS_STOP_SEQUENCES = ["\n", "User:", "Assistant:", "."]

_PROMPT_UNSAFE_CHARS = re.compile(r"[`${}]")


def _sanitize(text: str) -> str:
    return _PROMPT_UNSAFE_CHARS.sub("", text)


def get_sms_prompt(topic: str, character: Character) -> str:
    """Prompt for a single-sentence SMS about a topic."""
    bio = "\n".join(_sanitize(line) for line in character.bio)
    style = "\n".join(_sanitize(line) for line in character.style)

    return f"""You are {_sanitize(character.name)}. Generate a very concise SMS message about {_sanitize(topic)}.
Important: Keep your response to a single complete sentence, ideally under 120 characters.
Do not use multiple sentences. Be engaging but brief.

Bio traits to incorporate:
{bio}

Speaking style:
{style}"""


class SmsHandler:
    """Generates and sends one SMS reply per inbound message."""

    def __init__(
        self,
        twilio: Optional[TwilioService],
        memory: ConversationMemory,
        default_runtime: Optional[AgentRuntime] = None,
    ):
        self.twilio = twilio
        self.memory = memory
        self.default_runtime = default_runtime

    def init(self, runtime: AgentRuntime) -> None:
        self.default_runtime = runtime
        logger.info("[SMS] SMS handler initialized with runtime")

    async def reply(
        self,
        to_number: str,
        prompt_or_message: str,
        runtime: Optional[AgentRuntime] = None,
        is_direct: bool = False,
    ) -> str:
        """
        Send an SMS to to_number.

        Direct messages are sent as given; otherwise the text is generated
        from a persona prompt about prompt_or_message. Either way the body is
        cut back to the last complete sentence within 160 characters.

        Returns:
            The text that was sent
        """
        runtime = runtime or self.default_runtime
        if runtime is None:
            raise ConfigurationError("Runtime not initialized")
        if self.twilio is None:
            raise ConfigurationError("Twilio service not properly initialized")
        if not self.twilio.phone_number:
            raise ConfigurationError("TWILIO_PHONE_NUMBER environment variable is not set")

        if is_direct:
            message = truncate_to_complete_sentence(prompt_or_message.strip(), SMS_MAX_LENGTH)
        else:
            logger.info(f"[SMS] Generating SMS content - Prompt length: {len(prompt_or_message)}")
            generated = await runtime.generate_text(
                get_sms_prompt(prompt_or_message, runtime.character),
                model_class=ModelClass.MEDIUM,
                stop=SMS_STOP_SEQUENCES,
            )
            if not generated or not generated.strip():
                raise CallbridgeError("Failed to generate message content")
            message = truncate_to_complete_sentence(generated.strip(), SMS_MAX_LENGTH)

        await self.twilio.send_sms(to=to_number, body=message)
        logger.info(f"[SMS] SMS sent successfully - To: {to_number}, Length: {len(message)}")
        return message

    async def handle_inbound_message(self, from_number: str, body: str) -> str:
        """Reply to an inbound SMS and record the exchange in the sender's thread."""
        runtime = self.default_runtime
        if runtime is None:
            raise ConfigurationError("Runtime not initialized")

        if self.memory.get_session(from_number) is None:
            self.memory.create_session(from_number, runtime.character.name)
        self.memory.append_message(from_number, "user", body)

        response = await self.reply(from_number, body, runtime)

        try:
            self.memory.append_message(from_number, "assistant", response)
        except SessionNotFoundError:
            # Evicted while the reply was being generated
            self.memory.create_session(from_number, runtime.character.name)
            self.memory.append_message(from_number, "assistant", response)

        return response
