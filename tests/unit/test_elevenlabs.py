"""Unit tests for the ElevenLabs client."""
import json

import httpx
import pytest

from callbridge.core.errors import QuotaExceededError, SynthesisError
from callbridge.services.speech.base import VoiceSettings
from callbridge.services.speech.elevenlabs import ElevenLabsClient
from callbridge.services.speech.tts import TextToSpeechService


def make_client(handler):
    return ElevenLabsClient(
        "xi-test-key",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.fixture
def voice_settings():
    return VoiceSettings(voice_id="voice-1", model_id="eleven_monolingual_v1", stability=0.3)


class TestElevenLabsClient:
    """Test request shape and error mapping."""

    @pytest.mark.asyncio
    async def test_text_to_speech_success(self, voice_settings):
        """Test audio bytes come back and the request carries key and settings."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("xi-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=b"mp3-bytes")

        client = make_client(handler)
        audio = await client.text_to_speech("Hello.", voice_settings)

        assert audio == b"mp3-bytes"
        assert seen["url"].endswith("/v1/text-to-speech/voice-1/stream")
        assert seen["key"] == "xi-test-key"
        assert seen["body"]["text"] == "Hello."
        assert seen["body"]["model_id"] == "eleven_monolingual_v1"
        assert seen["body"]["voice_settings"]["stability"] == 0.3

    @pytest.mark.asyncio
    async def test_quota_exceeded(self, voice_settings):
        """Test a quota_exceeded error body raises the quota error."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                401,
                json={"detail": {"status": "quota_exceeded", "message": "You have 0 credits"}},
            )

        client = make_client(handler)

        with pytest.raises(QuotaExceededError):
            await client.text_to_speech("Hello.", voice_settings)

    @pytest.mark.asyncio
    async def test_server_error(self, voice_settings):
        """Test other API errors raise a retryable synthesis error."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"detail": "internal"})

        client = make_client(handler)

        with pytest.raises(SynthesisError) as exc_info:
            await client.text_to_speech("Hello.", voice_settings)

        assert not isinstance(exc_info.value, QuotaExceededError)
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_empty_audio(self, voice_settings):
        """Test an empty body is treated as a failure."""
        client = make_client(lambda request: httpx.Response(200, content=b""))

        with pytest.raises(SynthesisError):
            await client.text_to_speech("Hello.", voice_settings)

    @pytest.mark.asyncio
    async def test_transport_error(self, voice_settings):
        """Test network failures surface as synthesis errors."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(SynthesisError):
            await client.text_to_speech("Hello.", voice_settings)

    @pytest.mark.asyncio
    async def test_remaining_characters(self):
        """Test remaining quota is limit minus used."""
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/user/subscription")
            return httpx.Response(200, json={"character_limit": 10000, "character_count": 2500})

        client = make_client(handler)

        assert await client.remaining_characters() == 7500

    @pytest.mark.asyncio
    async def test_remaining_characters_html_body(self):
        """Test a proxy error page is reported as a synthesis error."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>bad gateway</html>")

        client = make_client(handler)

        with pytest.raises(SynthesisError):
            await client.remaining_characters()

    @pytest.mark.asyncio
    async def test_remaining_characters_null_field(self):
        """Test a missing count is reported as a synthesis error."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"character_limit": 10000, "character_count": None})

        client = make_client(handler)

        with pytest.raises(SynthesisError):
            await client.remaining_characters()

    @pytest.mark.asyncio
    async def test_capacity_check_survives_bad_subscription_body(self):
        """Test an unreadable quota answer leaves the service usable."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>bad gateway</html>")

        service = TextToSpeechService(backend=make_client(handler))

        assert await service.check_capacity() is True
        assert service.capacity_exhausted is False
