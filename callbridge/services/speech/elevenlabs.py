"""ElevenLabs text-to-speech client."""
import json
from typing import Optional

import httpx

from callbridge.core.errors import QuotaExceededError, SynthesisError
from callbridge.core.logging import get_logger
from callbridge.services.speech.base import SpeechBackend, VoiceSettings

logger = get_logger(__name__)

ELEVENLABS_BASE_URL = "https://api.elevenlabs.io/v1"
DEFAULT_REQUEST_TIMEOUT = 15.0


class ElevenLabsClient(SpeechBackend):
    """Thin async client for the ElevenLabs REST API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = ELEVENLABS_BASE_URL,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=DEFAULT_REQUEST_TIMEOUT)

    async def text_to_speech(self, text: str, voice_settings: VoiceSettings) -> bytes:
        """
        Synthesize text to MP3 audio.

        Raises:
            QuotaExceededError: the account has no characters left
            SynthesisError: any other API or transport failure
        """
        url = f"{self.base_url}/text-to-speech/{voice_settings.voice_id}/stream"
        payload = {
            "text": text,
            "model_id": voice_settings.model_id,
            "optimize_streaming_latency": 4,
            "output_format": "mp3_44100_128",
            "voice_settings": {
                "stability": voice_settings.stability,
                "similarity_boost": voice_settings.similarity_boost,
                "style": voice_settings.style,
                "use_speaker_boost": voice_settings.use_speaker_boost,
            },
        }

        try:
            response = await self._client.post(
                url,
                json=payload,
                headers={
                    "xi-api-key": self.api_key,
                    "Content-Type": "application/json",
                    "Accept": "audio/mpeg",
                },
            )
        except httpx.HTTPError as e:
            raise SynthesisError(f"ElevenLabs request failed: {type(e).__name__}: {str(e)}") from e

        if response.status_code >= 400:
            self._raise_for_error(response)

        if not response.content:
            raise SynthesisError("Received empty audio buffer from ElevenLabs")

        return response.content

    async def remaining_characters(self) -> int:
        """Characters left in the current subscription period."""
        try:
            response = await self._client.get(
                f"{self.base_url}/user/subscription",
                headers={"xi-api-key": self.api_key, "Accept": "application/json"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SynthesisError(f"ElevenLabs subscription check failed: {str(e)}") from e

        try:
            data = response.json()
            return int(data["character_limit"]) - int(data["character_count"])
        except (ValueError, TypeError, KeyError) as e:
            raise SynthesisError(
                f"Unexpected ElevenLabs subscription response: {type(e).__name__}: {response.text[:200]}"
            ) from e

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _raise_for_error(response: httpx.Response) -> None:
        try:
            error_data = response.json()
        except (json.JSONDecodeError, ValueError):
            error_data = None

        detail = error_data.get("detail") if isinstance(error_data, dict) else None
        if isinstance(detail, dict) and detail.get("status") == "quota_exceeded":
            raise QuotaExceededError(
                "ElevenLabs quota exceeded", status_code=response.status_code
            )

        body = json.dumps(error_data) if error_data is not None else response.text[:200]
        raise SynthesisError(
            f"ElevenLabs API error: {response.status_code} - {body}",
            status_code=response.status_code,
        )
