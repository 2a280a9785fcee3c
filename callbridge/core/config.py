"""Application configuration."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Twilio
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None
    twilio_character: Optional[str] = None  # Path to character JSON file

    # Webhook server
    webhook_base_url: Optional[str] = None
    webhook_host: str = "0.0.0.0"
    webhook_port: Optional[int] = None

    # ElevenLabs
    elevenlabs_xi_api_key: Optional[str] = None
    elevenlabs_voice_id: str = "21m00Tcm4TlvDq8ikWAM"
    elevenlabs_default_model: str = "eleven_monolingual_v1"

    # OpenAI (default text generation runtime)
    openai_api_key: Optional[str] = None
    openai_model_small: str = "gpt-4o-mini"
    openai_model_medium: str = "gpt-4o-mini"
    openai_model_large: str = "gpt-4o"

    # Rate limiting (per client, per window)
    incoming_call_rate_limit: int = 200
    outgoing_call_rate_limit: int = 100
    rate_limit_window_seconds: int = 15 * 60

    debug: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
