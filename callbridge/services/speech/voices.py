"""Voice selection for Twilio <Say> fallback and ElevenLabs requests."""
from typing import Dict, NamedTuple

from callbridge.services.runtime.character import Character, VoiceProfile
from callbridge.services.speech.base import VoiceSettings


class SayVoice(NamedTuple):
    """Twilio built-in TTS voice."""

    voice: str
    language: str


SAY_VOICES: Dict[str, SayVoice] = {
    "en-male": SayVoice("Polly.Matthew-Neural", "en-US"),
    "en-female": SayVoice("Polly.Joanna-Neural", "en-US"),
    "zh-male": SayVoice("Polly.Zhiyu-Neural", "cmn-CN"),
    "zh-female": SayVoice("Polly.Zhiyu-Neural", "cmn-CN"),
    "fr-male": SayVoice("Polly.Mathieu-Neural", "fr-FR"),
    "fr-female": SayVoice("Polly.Lea-Neural", "fr-FR"),
}

DEFAULT_SAY_VOICE = SayVoice("Polly.Matthew-Neural", "en-US")


def resolve_say_voice(profile: VoiceProfile) -> SayVoice:
    """Pick the Twilio voice for a character's voice profile."""
    if profile.custom:
        return SayVoice(profile.custom, "en-US")
    return SAY_VOICES.get(f"{profile.language}-{profile.gender}", DEFAULT_SAY_VOICE)


def parse_voice_settings(
    character: Character, default_voice_id: str, default_model: str
) -> VoiceSettings:
    """Resolve ElevenLabs settings, preferring the character's own values."""
    elevenlabs = character.voice.elevenlabs
    if elevenlabs is None:
        return VoiceSettings(voice_id=default_voice_id, model_id=default_model)

    return VoiceSettings(
        voice_id=elevenlabs.voice_id or default_voice_id,
        model_id=elevenlabs.model or default_model,
        stability=elevenlabs.stability,
        similarity_boost=elevenlabs.similarity_boost,
        style=elevenlabs.style,
        use_speaker_boost=elevenlabs.use_speaker_boost,
    )
