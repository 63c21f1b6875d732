"""
Background loop that restarts synchronization on a fixed interval.

Keeps the anchor fresh for long-running hosts and gives failed syncs another
chance without the coordinator retrying on its own.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from truetime.services.sync_coordinator import SyncCoordinator

logger = logging.getLogger(__name__)


class ResyncLoopService:
    """
    Service that calls start_sync() every interval_seconds.

    An interval of zero or less disables the loop.
    """

    def __init__(self, coordinator: SyncCoordinator, interval_seconds: float):
        self._coordinator = coordinator
        self._interval_seconds = interval_seconds
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._shutdown_event: asyncio.Event | None = None
        self._resync_count = 0

    @property
    def is_enabled(self) -> bool:
        return self._interval_seconds > 0

    @property
    def is_running(self) -> bool:
        return self._running

    def get_status(self) -> dict[str, Any]:
        return {
            "enabled": self.is_enabled,
            "running": self._running,
            "interval_seconds": self._interval_seconds,
            "resync_count": self._resync_count,
            "task_running": self._task is not None and not self._task.done(),
        }

    async def start(self) -> None:
        """Start the resync loop if it is enabled and not already running."""
        if not self.is_enabled:
            logger.debug("Resync loop disabled (interval=%s)", self._interval_seconds)
            return
        if self._running:
            logger.warning("Resync loop already running")
            return

        self._running = True
        self._shutdown_event = asyncio.Event()
        self._task = asyncio.create_task(self._resync_loop(), name="truetime-resync")
        logger.info("Resync loop started, interval=%ss", self._interval_seconds)

    async def stop(self) -> None:
        """Stop the loop and wait for its task to finish."""
        if not self._running:
            logger.debug("Resync loop not running")
            return

        self._running = False
        if self._shutdown_event:
            self._shutdown_event.set()

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                logger.debug("Resync task cancelled")

        logger.info("Resync loop stopped")

    async def _resync_loop(self) -> None:
        while self._running:
            try:
                if self._shutdown_event:
                    try:
                        await asyncio.wait_for(
                            self._shutdown_event.wait(),
                            timeout=self._interval_seconds,
                        )
                        break
                    except asyncio.TimeoutError:
                        pass

                if not self._running:
                    break

                self._resync_count += 1
                attempt_id = self._coordinator.start_sync()
                logger.debug("Periodic resync started attempt #%d", attempt_id)

            except asyncio.CancelledError:
                logger.debug("Resync loop cancelled")
                break
            except Exception as e:
                logger.error("Error in resync loop: %s", e, exc_info=True)


__all__ = ["ResyncLoopService"]
