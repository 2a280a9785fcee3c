"""Speech synthesis backend interface."""
from abc import ABC, abstractmethod

from pydantic import BaseModel


class VoiceSettings(BaseModel):
    """Voice parameters for one synthesis request."""

    voice_id: str
    model_id: str
    stability: float = 0.5
    similarity_boost: float = 0.8
    style: float = 0.5
    use_speaker_boost: bool = False


class SpeechBackend(ABC):
    """Abstract base class for text-to-speech providers."""

    @abstractmethod
    async def text_to_speech(self, text: str, voice_settings: VoiceSettings) -> bytes:
        """Synthesize text to audio bytes."""
        pass

    async def remaining_characters(self) -> int:
        """Characters left in the provider quota. Unlimited unless overridden."""
        return 2**31 - 1

    async def aclose(self) -> None:
        """Release provider resources."""
        pass
