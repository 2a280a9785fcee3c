"""Exception types shared across services."""
from typing import Optional


class CallbridgeError(Exception):
    """Base class for all callbridge errors."""


class ConfigurationError(CallbridgeError):
    """A required setting (credential, base URL, port, runtime) is missing or unusable."""


class SessionNotFoundError(CallbridgeError):
    """A conversation session does not exist for the given id."""

    def __init__(self, session_id: str):
        super().__init__(f"Conversation not found for id: {session_id}")
        self.session_id = session_id


class SynthesisError(CallbridgeError):
    """Transient speech synthesis failure (network, backend error, empty audio)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class QuotaExceededError(SynthesisError):
    """The synthesis backend reported that its character quota is exhausted."""


class SynthesisFailedError(CallbridgeError):
    """Speech synthesis failed after all retry attempts."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        reason = f"{type(last_error).__name__}: {last_error}" if last_error else "unknown error"
        super().__init__(f"TTS conversion failed after {attempts} attempts ({reason})")
        self.attempts = attempts
        self.last_error = last_error
