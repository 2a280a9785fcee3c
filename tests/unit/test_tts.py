"""Unit tests for the text-to-speech service."""
import asyncio

import pytest

from callbridge.core.errors import QuotaExceededError, SynthesisError, SynthesisFailedError
from callbridge.services.speech.base import SpeechBackend, VoiceSettings
from callbridge.services.speech.tts import SynthesisStatus, TextToSpeechService


class HangingBackend(SpeechBackend):
    """Backend whose requests never complete."""

    def __init__(self):
        self.calls = []

    async def text_to_speech(self, text, voice_settings):
        self.calls.append((text, voice_settings))
        await asyncio.sleep(3600)


@pytest.fixture
def voice_settings():
    return VoiceSettings(voice_id="voice-1", model_id="eleven_monolingual_v1")


def make_service(backend, **kwargs):
    kwargs.setdefault("timeout", 0.05)
    kwargs.setdefault("retry_delay", 0)
    return TextToSpeechService(backend=backend, **kwargs)


class TestTextToSpeechService:
    """Test synthesis retries and fallback signalling."""

    @pytest.mark.asyncio
    async def test_synthesize_success(self, voice_settings, make_speech_backend):
        """Test audio is returned on the first attempt."""
        backend = make_speech_backend()
        service = make_service(backend)

        result = await service.synthesize("Hello there.", voice_settings)

        assert result.ok
        assert result.audio == backend.audio
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self, voice_settings, make_speech_backend):
        """Test a backend error is retried and the next attempt succeeds."""
        backend = make_speech_backend(errors=[SynthesisError("502 from backend")])
        service = make_service(backend)

        result = await service.synthesize("Hello there.", voice_settings)

        assert result.ok
        assert len(backend.calls) == 2

    @pytest.mark.asyncio
    async def test_timeouts_exhaust_retries(self, voice_settings):
        """Test a hanging backend is retried and then fails terminally instead of hanging."""
        backend = HangingBackend()
        service = make_service(backend)

        with pytest.raises(SynthesisFailedError) as exc_info:
            await service.synthesize("Hello there.", voice_settings)

        assert exc_info.value.attempts == 3
        assert len(backend.calls) == 3

    @pytest.mark.asyncio
    async def test_retry_backoff_is_linear(self, voice_settings, make_speech_backend, monkeypatch):
        """Test sleeps between attempts grow with the attempt number."""
        delays = []

        async def fake_sleep(seconds):
            delays.append(seconds)

        backend = make_speech_backend(errors=[SynthesisError("a"), SynthesisError("b"), SynthesisError("c")])
        service = make_service(backend, retry_delay=1.0)
        monkeypatch.setattr("callbridge.services.speech.tts.asyncio.sleep", fake_sleep)

        with pytest.raises(SynthesisFailedError):
            await service.synthesize("Hello there.", voice_settings)

        assert delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_quota_exceeded_not_retried(self, voice_settings, make_speech_backend):
        """Test quota exhaustion is reported to the caller without retrying."""
        backend = make_speech_backend(errors=[QuotaExceededError("quota exceeded", status_code=401)])
        service = make_service(backend)

        result = await service.synthesize("Hello there.", voice_settings)

        assert result.status == SynthesisStatus.CAPACITY_EXHAUSTED
        assert not result.ok
        assert len(backend.calls) == 1
        assert service.capacity_exhausted is True

    @pytest.mark.asyncio
    async def test_degraded_mode_skips_backend(self, voice_settings, make_speech_backend):
        """Test later requests do not touch an exhausted backend."""
        backend = make_speech_backend(errors=[QuotaExceededError("quota exceeded")])
        service = make_service(backend)
        await service.synthesize("First.", voice_settings)

        result = await service.synthesize("Second.", voice_settings)

        assert result.status == SynthesisStatus.CAPACITY_EXHAUSTED
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_no_backend_is_unavailable(self, voice_settings):
        """Test an unconfigured service tells the caller to use another provider."""
        service = TextToSpeechService()

        result = await service.synthesize("Hello there.", voice_settings)

        assert result.status == SynthesisStatus.UNAVAILABLE
        assert service.available is False

    @pytest.mark.asyncio
    async def test_long_text_truncated(self, voice_settings, make_speech_backend):
        """Test text over the synthesis limit is cut before it reaches the backend."""
        backend = make_speech_backend()
        service = make_service(backend)
        text = "This sentence is fine. " * 30

        await service.synthesize(text, voice_settings)

        sent_text = backend.calls[0][0]
        assert len(sent_text) <= 300
        assert sent_text.endswith(".")

    @pytest.mark.asyncio
    async def test_check_capacity_marks_degraded(self, make_speech_backend):
        """Test an empty subscription puts the service into degraded mode."""
        service = make_service(make_speech_backend(remaining=0))

        available = await service.check_capacity()

        assert available is False
        assert service.capacity_exhausted is True

    @pytest.mark.asyncio
    async def test_check_capacity_ok(self, make_speech_backend):
        """Test a backend with quota stays available."""
        service = make_service(make_speech_backend(remaining=5000))

        assert await service.check_capacity() is True
        assert service.capacity_exhausted is False
