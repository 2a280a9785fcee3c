"""Unit tests for the webhook HTTP routes."""
from fastapi.testclient import TestClient

from callbridge.core.config import Settings
from callbridge.services.voice.constants import ERROR_MESSAGE
from callbridge.services.webhook import WebhookService

SIGNATURE_HEADER = "X-Twilio-Signature"


def post_signed(client, sign, path, data):
    return client.post(path, data=data, headers={SIGNATURE_HEADER: sign(path, data)})


class TestHealth:
    def test_health(self, test_client):
        """Test GET /health returns ok."""
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestVoiceWebhook:
    """Test POST /webhook/voice."""

    def test_valid_signature_returns_twiml(self, test_client, sign, webhook_service):
        """Test a signed first callback greets the caller."""
        response = post_signed(test_client, sign, "/webhook/voice", {"CallSid": "CA123"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert "<Gather" in response.text
        assert webhook_service.voice_memory.get_session("CA123") is not None

    def test_missing_signature_rejected(self, test_client, webhook_service):
        """Test unsigned requests are refused before the handler runs."""
        response = test_client.post("/webhook/voice", data={"CallSid": "CA123"})

        assert response.status_code == 403
        assert webhook_service.voice_memory.get_session("CA123") is None

    def test_invalid_signature_rejected(self, test_client, webhook_service):
        """Test a wrong signature is refused."""
        response = test_client.post(
            "/webhook/voice",
            data={"CallSid": "CA123"},
            headers={SIGNATURE_HEADER: "bm90LWEtcmVhbC1zaWduYXR1cmU="},
        )

        assert response.status_code == 403
        assert webhook_service.voice_memory.get_session("CA123") is None

    def test_signature_over_different_params_rejected(self, test_client, sign):
        """Test a signature is bound to the exact parameters."""
        response = test_client.post(
            "/webhook/voice",
            data={"CallSid": "CA123", "SpeechResult": "hello"},
            headers={SIGNATURE_HEADER: sign("/webhook/voice", {"CallSid": "CA123"})},
        )

        assert response.status_code == 403

    def test_unconfigured_auth_token_is_server_error(self, test_settings, fake_runtime, mock_twilio):
        """Test validation cannot pass without an auth token."""
        settings = test_settings.model_copy(update={"twilio_auth_token": None})
        service = WebhookService(settings=settings, runtime=fake_runtime, twilio=mock_twilio)
        client = TestClient(service.app)

        response = client.post(
            "/webhook/voice", data={"CallSid": "CA123"}, headers={SIGNATURE_HEADER: "anything"}
        )

        assert response.status_code == 500

    def test_gather_callback_with_speech(self, test_client, sign, webhook_service):
        """Test a signed gather callback with a goodbye ends the call."""
        post_signed(test_client, sign, "/webhook/voice", {"CallSid": "CA123"})

        path = "/webhook/voice?gatherCallback=true"
        data = {"CallSid": "CA123", "SpeechResult": "bye bye"}
        response = test_client.post(path, data=data, headers={SIGNATURE_HEADER: sign(path, data)})

        assert response.status_code == 200
        assert "<Hangup" in response.text
        assert webhook_service.voice_memory.get_session("CA123") is None

    def test_handler_failure_still_returns_twiml(self, test_client, sign, webhook_service, make_runtime):
        """Test errors are answered with an apology, never a 5xx."""
        webhook_service.voice_handler.init(make_runtime(replies=[RuntimeError("boom")]))

        response = post_signed(test_client, sign, "/webhook/voice", {"CallSid": "CA123"})

        assert response.status_code == 200
        assert ERROR_MESSAGE in response.text
        assert "<Hangup" in response.text

    def test_rate_limit(self, test_settings, fake_runtime, mock_twilio, sign):
        """Test the incoming limiter answers 429 once the window is used up."""
        settings = test_settings.model_copy(update={"incoming_call_rate_limit": 2})
        service = WebhookService(settings=settings, runtime=fake_runtime, twilio=mock_twilio)
        client = TestClient(service.app)

        statuses = [
            post_signed(client, sign, "/webhook/voice", {"CallSid": f"CA{i}"}).status_code
            for i in range(3)
        ]
        response = post_signed(client, sign, "/webhook/voice", {"CallSid": "CA-last"})

        assert statuses == [200, 200, 429]
        assert response.status_code == 429
        assert response.json()["detail"] == "Too many incoming calls, please try again later"
        assert response.headers["RateLimit-Limit"] == "2"
        assert response.headers["RateLimit-Remaining"] == "0"

    def test_rate_limit_runs_before_signature_check(self, test_settings, fake_runtime, mock_twilio):
        """Test unsigned floods are also counted."""
        settings = test_settings.model_copy(update={"incoming_call_rate_limit": 1})
        service = WebhookService(settings=settings, runtime=fake_runtime, twilio=mock_twilio)
        client = TestClient(service.app)

        first = client.post("/webhook/voice", data={"CallSid": "CA1"})
        second = client.post("/webhook/voice", data={"CallSid": "CA2"})

        assert first.status_code == 403
        assert second.status_code == 429


class TestOutgoingVoiceWebhook:
    """Test POST /webhook/voice/outgoing."""

    def test_outgoing_greeting(self, test_client, sign, webhook_service, fake_runtime):
        """Test the answered outbound call greets about its topic."""
        path = "/webhook/voice/outgoing?topic=the%20launch"
        data = {"CallSid": "CA-out"}

        response = test_client.post(path, data=data, headers={SIGNATURE_HEADER: sign(path, data)})

        assert response.status_code == 200
        assert "<Gather" in response.text
        assert "the launch" in fake_runtime.calls[-1]["context"]

    def test_outgoing_requires_signature(self, test_client):
        response = test_client.post("/webhook/voice/outgoing", data={"CallSid": "CA-out"})

        assert response.status_code == 403


class TestCallStatusWebhook:
    """Test POST /webhook/voice/status."""

    def test_completed_status_cleans_up(self, test_client, sign, webhook_service):
        """Test a completed status forgets the call."""
        post_signed(test_client, sign, "/webhook/voice", {"CallSid": "CA123"})

        response = post_signed(
            test_client, sign, "/webhook/voice/status", {"CallSid": "CA123", "CallStatus": "completed"}
        )

        assert response.status_code == 200
        assert response.text == "OK"
        assert webhook_service.voice_memory.get_session("CA123") is None


class TestSmsWebhook:
    """Test POST /webhook/sms."""

    def test_success_returns_empty_twiml(self, test_client, mock_twilio):
        """Test the reply goes out via the REST API and the TwiML is empty."""
        response = test_client.post("/webhook/sms", data={"Body": "Hi", "From": "+15557654321"})

        assert response.status_code == 200
        assert "<Message>" not in response.text
        assert "<Response" in response.text
        mock_twilio.send_sms.assert_awaited_once()

    def test_error_returns_apology(self, test_client, webhook_service, make_runtime):
        """Test failures answer 200 with an apology message."""
        webhook_service.sms_handler.init(make_runtime(replies=[RuntimeError("model offline")]))

        response = test_client.post("/webhook/sms", data={"Body": "Hi", "From": "+15557654321"})

        assert response.status_code == 200
        assert "<Message>Sorry, I encountered an error. Please try again later.</Message>" in response.text


class TestAudioRoute:
    """Test GET /audio/{id}."""

    def test_serves_cached_audio(self, test_client, sign, webhook_service):
        """Test signed fetches get the audio with no-cache headers."""
        audio_id = webhook_service.audio_cache.put(b"mp3-bytes")
        path = f"/audio/{audio_id}"

        response = test_client.get(path, headers={SIGNATURE_HEADER: sign(path)})

        assert response.status_code == 200
        assert response.content == b"mp3-bytes"
        assert response.headers["content-type"] == "audio/mpeg"
        assert response.headers["x-content-type-options"] == "nosniff"
        assert "no-store" in response.headers["cache-control"]

    def test_unknown_audio_is_404(self, test_client, sign):
        """Test a missing id is a 404."""
        response = test_client.get("/audio/missing", headers={SIGNATURE_HEADER: sign("/audio/missing")})

        assert response.status_code == 404

    def test_unsigned_fetch_is_401(self, test_client, webhook_service):
        """Test audio is not served without a valid signature."""
        audio_id = webhook_service.audio_cache.put(b"mp3-bytes")

        missing = test_client.get(f"/audio/{audio_id}")
        invalid = test_client.get(f"/audio/{audio_id}", headers={SIGNATURE_HEADER: "bogus"})

        assert missing.status_code == 401
        assert invalid.status_code == 401
