"""Periodic tick driver for the simulation engine."""
from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from attrs import define, field

from singa_super.tasksim.engine import SimulationEngine
from singa_super.tasksim.store.interface import TaskRegistryProtocol

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 1.5
JOB_ID = "tasksim-tick"


@define(slots=False)
class TaskTicker:
    """Fires :meth:`SimulationEngine.tick` against one registry at a fixed interval.

    The ticker is the only writer driven by time. Ticks run on the event loop
    thread as an APScheduler interval job with ``max_instances=1`` so two
    passes can never overlap.

    :meth:`start` and :meth:`stop` only add and remove the tick job; the
    underlying scheduler stays up until :meth:`shutdown`. A ticker that was
    shut down builds a fresh scheduler on the next :meth:`start`.
    """

    registry: TaskRegistryProtocol
    engine: SimulationEngine = field(factory=SimulationEngine)
    tick_interval: float = DEFAULT_TICK_INTERVAL
    enable_background: bool = True
    scheduler: Optional[AsyncIOScheduler] = None
    _scheduler: Optional[AsyncIOScheduler] = field(init=False, default=None)
    _job_id: Optional[str] = field(init=False, default=None)
    _running: bool = field(init=False, default=False)
    _scheduler_started: bool = field(init=False, default=False)
    _scheduler_shut_down: bool = field(init=False, default=False)
    ticks: int = field(init=False, default=0)

    def __attrs_post_init__(self) -> None:
        self.tick_interval = max(0.05, float(self.tick_interval))
        self._scheduler = self.scheduler if self.enable_background else None
        if self.enable_background and self._scheduler is None:
            self._scheduler = AsyncIOScheduler(timezone="UTC")

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start ticking. Must be called from within a running event loop."""
        if not self.enable_background:
            raise RuntimeError("Background ticking is disabled for this TaskTicker instance")
        if self._scheduler is None:
            raise RuntimeError("AsyncIOScheduler is not configured")
        if self._running:
            return
        if self._scheduler_shut_down:
            self._scheduler = AsyncIOScheduler(timezone="UTC")
            self._scheduler_shut_down = False
        self._job_id = JOB_ID
        try:
            self._scheduler.add_job(
                self._scheduled_tick,
                trigger="interval",
                seconds=self.tick_interval,
                id=self._job_id,
                name=JOB_ID,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
            if not self._scheduler_started and not self._scheduler.running:
                self._scheduler.start()
                self._scheduler_started = True
        except Exception:
            self._remove_job()
            raise
        self._running = True
        logger.info("Task ticker started (interval=%.2fs)", self.tick_interval)

    def stop(self) -> None:
        """Stop ticking. Safe to call more than once."""
        if not self.enable_background or self._scheduler is None:
            return
        if not self._running:
            return
        try:
            self._remove_job()
        finally:
            self._running = False
        logger.info("Task ticker stopped after %d ticks", self.ticks)

    def shutdown(self, wait: bool = False) -> None:
        """Stop ticking and shut down the scheduler this ticker started."""
        self.stop()
        if not self._scheduler_started or self._scheduler is None:
            return
        try:
            self._scheduler.shutdown(wait=wait)
        finally:
            self._scheduler_started = False
            self._scheduler_shut_down = True

    def run_once(self) -> int:
        """Execute one tick synchronously (useful for tests)."""
        self.ticks += 1
        return self.engine.tick(self.registry)

    async def _scheduled_tick(self) -> None:
        self.run_once()

    def _remove_job(self) -> None:
        if self._scheduler is not None and self._job_id and self._scheduler.get_job(self._job_id):
            self._scheduler.remove_job(self._job_id)
        self._job_id = None


__all__ = ["DEFAULT_TICK_INTERVAL", "TaskTicker"]
