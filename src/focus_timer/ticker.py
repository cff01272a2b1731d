"""One-second tick source on APScheduler.

A single interval job drives the session. The held Job is the cancellation
token: arming always cancels the previous job first, so there is never more
than one ticker.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

TICK_JOB_ID = "focus_timer_tick"
TICK_SECONDS = 1


class Ticker:
    """Owns the repeating tick job on a shared scheduler."""

    def __init__(self, scheduler: AsyncIOScheduler):
        self.scheduler = scheduler
        self._job: Optional[Job] = None

    @property
    def armed(self) -> bool:
        return self._job is not None

    def arm(self, callback: Callable[[], Awaitable[None]]) -> None:
        """Start ticking `callback` every second, replacing any existing job.

        `callback` should be a coroutine function so the scheduler runs it on
        the event loop rather than in a worker thread.
        """
        self.cancel()
        self._job = self.scheduler.add_job(
            callback,
            trigger=IntervalTrigger(seconds=TICK_SECONDS),
            id=TICK_JOB_ID,
            name="focus-timer tick",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.debug("Ticker armed")

    def cancel(self) -> None:
        if self._job is None:
            return
        job, self._job = self._job, None
        try:
            job.remove()
        except JobLookupError:
            pass
        logger.debug("Ticker cancelled")

    def shutdown(self) -> None:
        self.cancel()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
