"""Character (persona) configuration."""
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ValidationError

from callbridge.core.logging import get_logger
from callbridge.services.voice.constants import DEFAULT_CHARACTER_NAME

logger = get_logger(__name__)


class ElevenLabsVoice(BaseModel):
    """ElevenLabs voice settings for a character."""

    voice_id: Optional[str] = None
    model: Optional[str] = None
    stability: float = 0.5
    similarity_boost: float = 0.8
    style: float = 0.5
    use_speaker_boost: bool = False


class VoiceProfile(BaseModel):
    """Voice selection for a character."""

    language: str = "en"
    gender: str = "male"
    custom: Optional[str] = None  # Explicit Twilio <Say> voice
    elevenlabs: Optional[ElevenLabsVoice] = None


class Character(BaseModel):
    """Persona the agent speaks as."""

    name: str = DEFAULT_CHARACTER_NAME
    bio: List[str] = []
    style: List[str] = []
    knowledge: List[str] = []
    voice: VoiceProfile = VoiceProfile()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "Character":
        """Build a character from an ElizaOS-style character JSON document."""
        voice_config = (config.get("settings") or {}).get("voice") or {}
        elevenlabs_config = voice_config.get("elevenlabs")

        elevenlabs = None
        if elevenlabs_config:
            elevenlabs = ElevenLabsVoice(
                voice_id=elevenlabs_config.get("voiceId"),
                model=elevenlabs_config.get("model"),
                stability=float(elevenlabs_config.get("stability") or 0.5),
                similarity_boost=float(elevenlabs_config.get("similarityBoost") or 0.8),
                style=float(elevenlabs_config.get("style") or 0.5),
                use_speaker_boost=bool(elevenlabs_config.get("useSpeakerBoost") or False),
            )

        return cls(
            name=config.get("name") or DEFAULT_CHARACTER_NAME,
            bio=_as_list(config.get("bio")),
            style=_as_list((config.get("style") or {}).get("all")),
            knowledge=_as_list(config.get("knowledge")),
            voice=VoiceProfile(
                language=voice_config.get("language") or "en",
                gender=voice_config.get("gender") or "male",
                custom=voice_config.get("custom"),
                elevenlabs=elevenlabs,
            ),
        )


def _as_list(value: Union[str, List[Any], None]) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value if isinstance(item, str)]


def load_character(path: Optional[str]) -> Character:
    """
    Load a character from a JSON file.

    Falls back to the default assistant persona when no path is configured
    or the file cannot be read.
    """
    if not path:
        logger.warning("[CHARACTER] TWILIO_CHARACTER not set, using default character")
        return Character()

    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return Character.from_config(data)
    except (OSError, json.JSONDecodeError, ValidationError, AttributeError) as e:
        logger.error(
            f"[CHARACTER] Failed to load character configuration from {path} - "
            f"Error: {type(e).__name__}: {str(e)}"
        )
        return Character()
