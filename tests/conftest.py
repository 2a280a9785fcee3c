"""Shared test fixtures and configuration."""
import os
from typing import List, Optional
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient
from twilio.request_validator import RequestValidator

# Set test environment variables before importing the package
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("TWILIO_ACCOUNT_SID", "ACtest")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "test-token")
os.environ.setdefault("TWILIO_PHONE_NUMBER", "+15550001111")

from callbridge.core.config import Settings
from callbridge.services.runtime.base import AgentRuntime, ModelClass
from callbridge.services.runtime.character import Character
from callbridge.services.speech.base import SpeechBackend, VoiceSettings
from callbridge.services.webhook import WebhookService

TEST_BASE_URL = "http://testserver"
TEST_AUDIO = b"ID3\x03\x00fake-mp3-frames"


class FakeRuntime(AgentRuntime):
    """Runtime returning queued replies (or a default) and recording prompts."""

    def __init__(
        self,
        character: Optional[Character] = None,
        replies: Optional[List] = None,
        default: str = "Hello, this is Test Agent. How can I help you today?",
    ):
        super().__init__(
            character
            or Character(name="Test Agent", bio=["A helpful test persona."], style=["Friendly"])
        )
        self.replies = list(replies or [])
        self.default = default
        self.calls = []

    async def generate_text(
        self,
        context: str,
        model_class: ModelClass = ModelClass.SMALL,
        stop: Optional[List[str]] = None,
    ) -> str:
        self.calls.append({"context": context, "model_class": model_class, "stop": stop})
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        return self.default


class FakeSpeechBackend(SpeechBackend):
    """Speech backend returning fixed audio, or raising queued errors first."""

    def __init__(self, audio: bytes = TEST_AUDIO, errors: Optional[List] = None, remaining: int = 10000):
        self.audio = audio
        self.errors = list(errors or [])
        self.remaining = remaining
        self.calls = []
        self.closed = False

    async def text_to_speech(self, text: str, voice_settings: VoiceSettings) -> bytes:
        self.calls.append((text, voice_settings))
        if self.errors:
            raise self.errors.pop(0)
        return self.audio

    async def remaining_characters(self) -> int:
        return self.remaining

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def test_settings():
    """Override settings for testing."""
    return Settings(
        openai_api_key="test-key",
        twilio_account_sid="ACtest",
        twilio_auth_token="test-token",
        twilio_phone_number="+15550001111",
        webhook_base_url=TEST_BASE_URL,
        elevenlabs_xi_api_key=None,
        incoming_call_rate_limit=200,
        outgoing_call_rate_limit=100,
    )


@pytest.fixture
def fake_runtime():
    return FakeRuntime()


@pytest.fixture
def fake_speech_backend():
    return FakeSpeechBackend()


@pytest.fixture
def mock_twilio():
    """Mock Twilio service with async REST calls."""
    twilio = Mock()
    twilio.phone_number = "+15550001111"
    twilio.send_sms = AsyncMock(return_value="SM123")
    twilio.create_call = AsyncMock(return_value="CA-outgoing-1")
    twilio.is_initialized = Mock(return_value=True)
    twilio.is_healthy = Mock(return_value=True)
    return twilio


@pytest.fixture
def webhook_service(test_settings, fake_runtime, fake_speech_backend, mock_twilio):
    """Webhook service wired with fakes; the singleton is reset around each test."""
    WebhookService.reset_instance()
    service = WebhookService(
        settings=test_settings,
        runtime=fake_runtime,
        twilio=mock_twilio,
        speech_backend=fake_speech_backend,
    )
    yield service
    WebhookService.reset_instance()


@pytest.fixture
def voice_handler(webhook_service):
    return webhook_service.voice_handler


@pytest.fixture
def sms_handler(webhook_service):
    return webhook_service.sms_handler


@pytest.fixture
def test_client(webhook_service):
    """Create FastAPI test client bound to the test webhook service."""
    return TestClient(webhook_service.app)


@pytest.fixture
def sign(test_settings):
    """Compute the X-Twilio-Signature Twilio would send for a path and params."""
    validator = RequestValidator(test_settings.twilio_auth_token)

    def _sign(path: str, params: Optional[dict] = None) -> str:
        return validator.compute_signature(f"{test_settings.webhook_base_url}{path}", params or {})

    return _sign


@pytest.fixture
def make_speech_backend():
    """Factory for fake speech backends with custom errors or quota."""
    return FakeSpeechBackend


@pytest.fixture
def make_runtime():
    """Factory for fake runtimes with queued replies."""
    return FakeRuntime


@pytest.fixture
def mock_openai():
    """Mock OpenAI API client."""
    mock_client = Mock()
    mock_completion = Mock()
    mock_completion.choices = [Mock(message=Mock(content="  Hello from the model.  "))]
    mock_client.chat.completions.create = AsyncMock(return_value=mock_completion)
    return mock_client
