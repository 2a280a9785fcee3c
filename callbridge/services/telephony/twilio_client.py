"""Twilio REST client wrapper."""
import asyncio
from typing import Optional

from twilio.rest import Client as TwilioClient

from callbridge.core.config import Settings
from callbridge.core.errors import ConfigurationError
from callbridge.core.logging import get_logger

logger = get_logger(__name__)


class TwilioService:
    """Service for placing calls and sending SMS through Twilio."""

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        phone_number: Optional[str] = None,
        client: Optional[TwilioClient] = None,
    ):
        if not account_sid or not auth_token:
            raise ConfigurationError("Missing required Twilio credentials")

        self.phone_number = phone_number
        self.client = client or TwilioClient(account_sid, auth_token)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TwilioService":
        return cls(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            settings.twilio_phone_number,
        )

    def is_initialized(self) -> bool:
        """Client built and an originating number configured."""
        return self.client is not None and bool(self.phone_number)

    def is_healthy(self) -> bool:
        return self.client is not None

    def _require_phone_number(self) -> str:
        if not self.phone_number:
            raise ConfigurationError("TWILIO_PHONE_NUMBER not set in environment")
        return self.phone_number

    async def send_sms(self, to: str, body: str) -> str:
        """Send an SMS. Returns the message SID."""
        from_number = self._require_phone_number()
        message = await asyncio.to_thread(
            self.client.messages.create, to=to, from_=from_number, body=body
        )
        logger.info(f"[TWILIO] SMS sent - To: {to}, Length: {len(body)}, MessageSid: {message.sid}")
        return message.sid

    async def create_call(self, to: str, url: str, status_callback: Optional[str] = None) -> str:
        """Place an outbound call that fetches its TwiML from url. Returns the call SID."""
        from_number = self._require_phone_number()
        params = {"to": to, "from_": from_number, "url": url}
        if status_callback:
            params["status_callback"] = status_callback
            params["status_callback_event"] = ["completed"]

        call = await asyncio.to_thread(self.client.calls.create, **params)
        logger.info(f"[TWILIO] Outbound call created - To: {to}, CallSid: {call.sid}")
        return call.sid
