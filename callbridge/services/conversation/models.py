"""Conversation memory models."""
from datetime import datetime, timezone
from typing import List, Literal

from pydantic import BaseModel, Field

Role = Literal["user", "assistant"]


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Message(BaseModel):
    """A single conversation turn."""

    role: Role
    content: str
    timestamp: str = Field(default_factory=_utc_now_iso)


class ConversationSession(BaseModel):
    """Conversation state for one call (keyed by CallSid) or SMS thread (keyed by sender)."""

    messages: List[Message] = []
    last_activity: float
    character_name: str = ""

    def get_transcript_text(self) -> str:
        """Get full transcript as text."""
        return "\n".join(f"{message.role}: {message.content}" for message in self.messages)
