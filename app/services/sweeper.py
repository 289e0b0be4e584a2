"""Background maintenance loop for in-memory state.

Runs registered housekeeping jobs (cache expiry, idle rate-limit identities)
on a fixed interval. Jobs are synchronous and thread-safe, so each one runs in
a worker thread and never blocks the event loop. A failing job is logged and
skipped; the loop itself only stops when cancelled.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable, Mapping

logger = logging.getLogger(__name__)

SweepJob = Callable[[], int]


class PeriodicSweeper:
    """Cancellable periodic task running housekeeping jobs.

    Attributes:
        interval_seconds: Delay between two sweep passes.
        jobs: Named callables returning how many items they removed.
    """

    def __init__(self, *, interval_seconds: float, jobs: Mapping[str, SweepJob]) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self.interval_seconds = interval_seconds
        self.jobs = dict(jobs)
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop on the running event loop (idempotent)."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info("sweep.started", extra={"interval_s": self.interval_seconds})

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("sweep.stopped")

    async def run_once(self) -> dict[str, int]:
        """Run every job once.

        Returns:
            Items removed per job; failed jobs are omitted.
        """
        results: dict[str, int] = {}
        for name, job in self.jobs.items():
            try:
                results[name] = await asyncio.to_thread(job)
            except Exception as exc:
                logger.warning(
                    "sweep.failed",
                    extra={"job": name, "error_type": type(exc).__name__},
                    exc_info=True,
                )
        if any(results.values()):
            logger.debug("sweep.completed", extra={"removed": results})
        return results

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()
