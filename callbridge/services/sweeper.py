"""Background task that runs a cleanup callback on a fixed period."""
import asyncio
from typing import Callable, Optional

from callbridge.core.logging import get_logger

logger = get_logger(__name__)


class PeriodicSweeper:
    """Runs `callback` every `interval` seconds until stopped."""

    def __init__(self, name: str, interval: float, callback: Callable[[], int]):
        self.name = name
        self.interval = interval
        self.callback = callback
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"sweeper:{self.name}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                removed = self.callback()
            except Exception as e:
                logger.error(
                    f"[SWEEPER] {self.name} sweep failed - Error: {type(e).__name__}: {str(e)}",
                    exc_info=True,
                )
                continue
            if removed:
                logger.debug(f"[SWEEPER] {self.name} removed {removed} entries")
