"""In-memory cache of synthesized audio served to Twilio by id."""
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from callbridge.core.logging import get_logger

logger = get_logger(__name__)

MAX_CACHE_SIZE = 100 * 1024 * 1024  # 100MB
AUDIO_TTL_SECONDS = 15 * 60
AUDIO_SWEEP_INTERVAL_SECONDS = 60


@dataclass
class AudioEntry:
    """Cached audio buffer."""

    buffer: bytes
    timestamp: float  # Last access time
    size: int


class AudioCache:
    """
    Size- and TTL-bounded store for synthesized speech.

    Entries expire TTL seconds after their last access. When an insert would
    push the cache over capacity, the least recently touched entry is
    evicted; only one entry is evicted per insert.
    """

    def __init__(
        self,
        max_size: int = MAX_CACHE_SIZE,
        ttl: float = AUDIO_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, AudioEntry] = {}
        self._current_size = 0

    @property
    def total_size(self) -> int:
        """Total cached bytes."""
        return self._current_size

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, audio_id: str) -> bool:
        return audio_id in self._entries

    def put(self, buffer: bytes) -> str:
        """Store audio and return its id."""
        self.sweep()

        audio_id = uuid.uuid4().hex
        size = len(buffer)

        if self._current_size + size > self.max_size:
            self._evict_oldest()

        self._entries[audio_id] = AudioEntry(
            buffer=buffer, timestamp=self._clock(), size=size
        )
        self._current_size += size

        logger.debug(
            f"[AUDIO] Added audio to cache - Size: {size / 1024:.2f}KB, "
            f"Total: {self._current_size / 1024 / 1024:.2f}MB, Entries: {len(self._entries)}"
        )
        return audio_id

    def get(self, audio_id: str) -> Optional[bytes]:
        """Get audio by id, refreshing its access time. None if unknown or expired."""
        entry = self._entries.get(audio_id)
        if entry is None:
            return None

        now = self._clock()
        if now - entry.timestamp > self.ttl:
            self._remove(audio_id)
            return None

        entry.timestamp = now
        return entry.buffer

    def sweep(self) -> int:
        """Remove expired entries. Returns the number removed."""
        now = self._clock()
        expired = [
            audio_id
            for audio_id, entry in self._entries.items()
            if now - entry.timestamp > self.ttl
        ]

        freed = 0
        for audio_id in expired:
            freed += self._remove(audio_id)

        if expired:
            logger.info(
                f"[AUDIO] Cleaned up expired audio entries - Removed: {len(expired)}, "
                f"Freed: {freed / 1024:.2f}KB, Remaining: {self._current_size / 1024 / 1024:.2f}MB"
            )
        return len(expired)

    def clear(self) -> None:
        """Drop all cached audio."""
        self._entries.clear()
        self._current_size = 0

    def _evict_oldest(self) -> None:
        if not self._entries:
            return

        oldest_id = min(self._entries, key=lambda audio_id: self._entries[audio_id].timestamp)
        age = self._clock() - self._entries[oldest_id].timestamp
        freed = self._remove(oldest_id)
        logger.info(
            f"[AUDIO] Evicted oldest audio entry - Age: {age / 60:.1f}min, "
            f"Freed: {freed / 1024:.2f}KB"
        )

    def _remove(self, audio_id: str) -> int:
        entry = self._entries.pop(audio_id, None)
        if entry is None:
            return 0
        self._current_size -= entry.size
        return entry.size
