"""Per-session conversation memory with idle eviction."""
import time
from typing import Callable, Dict, Optional

from callbridge.core.errors import SessionNotFoundError
from callbridge.core.logging import get_logger
from callbridge.services.conversation.models import ConversationSession, Message, Role

logger = get_logger(__name__)

CONVERSATION_TTL_SECONDS = 30 * 60
CONVERSATION_SWEEP_INTERVAL_SECONDS = 5 * 60


class ConversationMemory:
    """
    Store of conversation sessions keyed by an external id.

    One instance holds voice calls (keyed by CallSid), another holds SMS
    threads (keyed by sender number). Sessions idle for longer than the TTL
    are removed by sweep().
    """

    def __init__(
        self,
        name: str = "voice",
        ttl: float = CONVERSATION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.ttl = ttl
        self._clock = clock
        self._sessions: Dict[str, ConversationSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def create_session(self, session_id: str, character_name: str) -> ConversationSession:
        """Create an empty session, replacing any existing one for the id."""
        session = ConversationSession(
            messages=[],
            last_activity=self._clock(),
            character_name=character_name,
        )
        self._sessions[session_id] = session
        return session

    def get_session(self, session_id: str) -> Optional[ConversationSession]:
        """Get an existing session."""
        return self._sessions.get(session_id)

    def append_message(self, session_id: str, role: Role, content: str) -> None:
        """
        Append a turn to a session.

        Raises:
            SessionNotFoundError: no session exists for session_id
        """
        session = self._sessions.get(session_id)
        if session is None:
            logger.error(
                f"[MEMORY:{self.name}] Attempt to add message to non-existent conversation - "
                f"Id: {session_id}"
            )
            raise SessionNotFoundError(session_id)

        if not content or not content.strip():
            logger.warning(
                f"[MEMORY:{self.name}] Ignoring empty {role} message - Id: {session_id}"
            )
            return

        session.messages.append(Message(role=role, content=content))
        session.last_activity = max(session.last_activity, self._clock())

    def clear_session(self, session_id: str) -> None:
        """Remove a session if present."""
        self._sessions.pop(session_id, None)

    def sweep(self) -> int:
        """Remove sessions idle for longer than the TTL. Returns the number removed."""
        now = self._clock()
        stale = [
            session_id
            for session_id, session in self._sessions.items()
            if now - session.last_activity > self.ttl
        ]
        for session_id in stale:
            del self._sessions[session_id]
            logger.info(f"[MEMORY:{self.name}] Cleaned up inactive conversation - Id: {session_id}")
        return len(stale)

    def clear(self) -> None:
        """Drop every session."""
        self._sessions.clear()
