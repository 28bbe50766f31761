"""Background removal of expired sessions."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

from planning_poker.services.registry import SessionRegistry

_logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 30 * 60


def sweep_expired_sessions(
    registry: SessionRegistry, now: datetime | None = None
) -> list[str]:
    """Delete sessions past their expiry time once and return their ids.

    Repository deletes run on the calling thread, so async callers should
    hand this to a worker thread.
    """
    expired = registry.purge_expired(now)
    if expired:
        _logger.info("Cleaned up %s expired sessions", len(expired))
    return expired


@dataclass
class ExpirySweeper:
    """Runs :func:`sweep_expired_sessions` on a fixed interval."""

    registry: SessionRegistry
    interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS
    _task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run())
        _logger.info("Started expiry sweeper: interval=%ss", self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        _logger.info("Stopped expiry sweeper")

    def sweep_once(self, now: datetime | None = None) -> list[str]:
        return sweep_expired_sessions(self.registry, now)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await asyncio.to_thread(self.sweep_once)
            except Exception:
                _logger.exception("Expiry sweep failed")
