"""Send a text message from a chat command."""
import re

from callbridge.actions.base import Action, ActionResult, map_delivery_error
from callbridge.core.logging import get_logger
from callbridge.services.runtime.base import AgentRuntime
from callbridge.services.sms.handler import SmsHandler

logger = get_logger(__name__)

# E.164: 1-3 digit country code (no leading zero), then 9-12 digits
PHONE_PATTERN = re.compile(r"^\+(?:[1-9]\d{1,2})(?:\d{9,12})$")

SMS_PATTERN = re.compile(
    r"send (?:an? )?(?:sms|text|message) to (\+\d{1,3}\d{9,12}) (?:saying|telling|about|with) (.*)",
    re.IGNORECASE,
)

TRIGGER_PHRASES = ["send sms", "send text", "send message", "sms to", "text to", "message to"]

PERMISSION_MESSAGE = "Sorry, I don't have permission to text this number. It might need to be verified first."


class SmsAction(Action):
    """Texts a number, either verbatim ("saying ...") or with generated content."""

    name = "sms"
    description = "Send SMS messages via Twilio"
    similes = ["SEND_TEXT", "TEXT_MESSAGE", "SMS_MESSAGE"]

    def __init__(self, sms_handler: SmsHandler):
        self.sms_handler = sms_handler

    def validate(self, text: str) -> bool:
        if not text:
            return False

        normalized = text.lower()
        if not any(phrase in normalized for phrase in TRIGGER_PHRASES):
            return False

        match = SMS_PATTERN.search(text)
        return match is not None and PHONE_PATTERN.match(match.group(1)) is not None

    async def handle(self, runtime: AgentRuntime, text: str) -> ActionResult:
        match = SMS_PATTERN.search(text or "")
        if not match:
            return ActionResult(success=False, message="Invalid SMS command format")

        phone_number, content = match.group(1), match.group(2).strip()
        is_direct = " saying " in text.lower()

        try:
            if not PHONE_PATTERN.match(phone_number):
                raise ValueError("Invalid phone number format")

            sent = await self.sms_handler.reply(phone_number, content, runtime, is_direct=is_direct)
        except Exception as e:
            logger.error(f"[SMS ACTION] Failed to send SMS - Error: {type(e).__name__}: {str(e)}")
            result = map_delivery_error(e, PERMISSION_MESSAGE)
            if result is None:
                raise
            return result

        return ActionResult(success=True, message=f'SMS sent to {phone_number}: "{sent}"')
