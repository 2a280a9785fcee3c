"""Agent plugin: chat commands plus the webhook server behind them."""
import asyncio
from typing import Dict, List, Optional

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_fixed

from callbridge.actions.base import Action
from callbridge.actions.call import CallAction
from callbridge.actions.sms import SmsAction
from callbridge.core.logging import get_logger
from callbridge.services.runtime.base import AgentRuntime
from callbridge.services.webhook import WebhookService, get_webhook_service

logger = get_logger(__name__)

MAX_INIT_ATTEMPTS = 3
INIT_RETRY_DELAY_SECONDS = 5.0


class TwilioPlugin:
    """Exposes the call and SMS commands to an agent runtime."""

    name = "twilio"
    description = "Twilio integration for voice and SMS interactions"

    def __init__(
        self,
        service: Optional[WebhookService] = None,
        retry_delay: float = INIT_RETRY_DELAY_SECONDS,
    ):
        self.service = service or get_webhook_service()
        self.retry_delay = retry_delay
        self.actions: List[Action] = [
            CallAction(self.service.voice_handler),
            SmsAction(self.service.sms_handler),
        ]

    def find_action(self, text: str) -> Optional[Action]:
        """First action whose pattern matches the chat message."""
        for action in self.actions:
            if action.validate(text):
                return action
        return None

    async def initialize(self, runtime: AgentRuntime) -> None:
        """Start the webhook service, retrying transient startup failures."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(MAX_INIT_ATTEMPTS),
                wait=wait_fixed(self.retry_delay),
                before_sleep=self._log_retry,
                sleep=asyncio.sleep,
                reraise=True,
            ):
                with attempt:
                    await self.service.initialize(runtime)
        except Exception as e:
            logger.error(
                f"[PLUGIN] Webhook service failed to start - Error: {type(e).__name__}: {str(e)}"
            )
            raise

        logger.info("[PLUGIN] Webhook service initialized")
        if self.service.twilio is None or not self.service.twilio.is_initialized():
            logger.error("[PLUGIN] Failed to initialize Twilio service - check your credentials")
            return

        logger.info(f"[PLUGIN] Available actions: {[action.name for action in self.actions]}")

    def _log_retry(self, retry_state: RetryCallState) -> None:
        logger.warning(
            f"[PLUGIN] Retrying webhook initialization in {self.retry_delay}s - "
            f"Attempt: {retry_state.attempt_number}, Error: {str(retry_state.outcome.exception())}"
        )

    def health(self) -> Dict[str, bool]:
        twilio = self.service.twilio
        return {
            "webhook": self.service.is_healthy(),
            "twilio": twilio is not None and twilio.is_healthy(),
        }
