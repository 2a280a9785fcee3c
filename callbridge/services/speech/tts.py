"""Text-to-speech service."""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from callbridge.core.errors import QuotaExceededError, SynthesisError, SynthesisFailedError
from callbridge.core.logging import get_logger
from callbridge.services.speech.base import SpeechBackend, VoiceSettings
from callbridge.services.text import truncate_to_complete_sentence

logger = get_logger(__name__)

TTS_TIMEOUT_SECONDS = 10.0
TTS_MAX_ATTEMPTS = 3
TTS_RETRY_BASE_DELAY_SECONDS = 1.0
MAX_SYNTHESIS_CHARS = 300


class SynthesisStatus(str, Enum):
    """Outcome of a synthesis request."""

    OK = "ok"
    CAPACITY_EXHAUSTED = "capacity_exhausted"  # Backend quota gone, caller should swap provider
    UNAVAILABLE = "unavailable"  # No backend configured


@dataclass
class SynthesisResult:
    """Synthesized audio, or the reason the caller must use another provider."""

    status: SynthesisStatus
    audio: Optional[bytes] = None

    @property
    def ok(self) -> bool:
        return self.status == SynthesisStatus.OK


class TextToSpeechService:
    """
    Service for converting text to speech.

    Transient backend faults (timeouts, API errors) are retried here with
    linear backoff. Quota exhaustion is not retried: it puts the service in
    degraded mode and is reported as CAPACITY_EXHAUSTED so callers can fall
    back to another provider.
    """

    def __init__(
        self,
        backend: Optional[SpeechBackend] = None,
        timeout: float = TTS_TIMEOUT_SECONDS,
        max_attempts: int = TTS_MAX_ATTEMPTS,
        retry_delay: float = TTS_RETRY_BASE_DELAY_SECONDS,
        max_chars: int = MAX_SYNTHESIS_CHARS,
    ):
        self.backend = backend
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.max_chars = max_chars
        self.capacity_exhausted = False

    @property
    def available(self) -> bool:
        return self.backend is not None and not self.capacity_exhausted

    async def synthesize(self, text: str, voice_settings: VoiceSettings) -> SynthesisResult:
        """
        Synthesize speech from text.

        Raises:
            SynthesisFailedError: every attempt timed out or failed
        """
        if self.backend is None:
            return SynthesisResult(SynthesisStatus.UNAVAILABLE)
        if self.capacity_exhausted:
            return SynthesisResult(SynthesisStatus.CAPACITY_EXHAUSTED)

        if len(text) > self.max_chars:
            logger.warning(
                f"[TTS] Text length ({len(text)}) exceeds {self.max_chars} characters, truncating"
            )
            text = truncate_to_complete_sentence(text, self.max_chars)

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
                retry=(
                    retry_if_exception_type((asyncio.TimeoutError, SynthesisError))
                    & retry_if_not_exception_type(QuotaExceededError)
                ),
                before_sleep=self._log_retry,
                sleep=asyncio.sleep,
                reraise=True,
            ):
                with attempt:
                    audio = await asyncio.wait_for(
                        self.backend.text_to_speech(text, voice_settings),
                        timeout=self.timeout,
                    )
                    if not audio:
                        raise SynthesisError("Empty audio buffer received")

        except QuotaExceededError:
            logger.warning("[TTS] Synthesis quota exceeded, switching to fallback voice")
            self.capacity_exhausted = True
            return SynthesisResult(SynthesisStatus.CAPACITY_EXHAUSTED)

        except (asyncio.TimeoutError, SynthesisError) as e:
            logger.error(
                f"[TTS] TTS conversion failed after {self.max_attempts} attempts - "
                f"Error: {type(e).__name__}: {str(e) or 'timeout'}"
            )
            raise SynthesisFailedError(self.max_attempts, e) from e

        return SynthesisResult(SynthesisStatus.OK, audio)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        logger.warning(
            f"[TTS] Attempt {retry_state.attempt_number}/{self.max_attempts} failed - "
            f"Error: {type(error).__name__}: {str(error) or 'timeout'}"
        )

    async def check_capacity(self) -> bool:
        """Ask the backend for its remaining quota; enter degraded mode when empty."""
        if self.backend is None:
            logger.warning("[TTS] No synthesis backend configured, using Twilio TTS")
            return False

        try:
            remaining = await self.backend.remaining_characters()
        except SynthesisError as e:
            logger.error(f"[TTS] Failed to check synthesis quota - Error: {str(e)}")
            return self.available

        if remaining <= 0:
            logger.warning("[TTS] Synthesis quota exhausted, falling back to Twilio TTS")
            self.capacity_exhausted = True
        else:
            logger.info(f"[TTS] Synthesis backend ready - Characters available: {remaining}")
        return self.available

    async def aclose(self) -> None:
        if self.backend is not None:
            await self.backend.aclose()
