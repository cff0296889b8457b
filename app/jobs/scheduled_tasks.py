"""Recurring triggers.

Jobs are registered on a ``schedule.Scheduler`` instance and driven from the
asyncio event loop by ``run_continuously``. Async jobs are spawned as tasks;
a job whose previous run has not finished yet is skipped, so runs of the same
job never overlap. Every job is wrapped by ``safe_run``, so a failing job
never stops the loop.
"""

import asyncio
import functools
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import schedule

from infrastructure.configuration import Settings
from infrastructure.logging import get_module_logger

logger = get_module_logger()

SCHEDULE_CHECK = "schedule_check"
PROBE_CHECK = "probe_check"
CAPACITY_CHECK = "capacity_check"
CAPACITY_SUMMARY = "capacity_summary"
ALERT_SWEEP = "alert_sweep"
SCHEDULER_HEARTBEAT = "scheduler_heartbeat"


def safe_run(job):
    @functools.wraps(job)
    def wrapper(*args, **kwargs):
        try:
            return job(*args, **kwargs)
        except Exception as e:
            logger.error(
                "safe_run_error",
                error=str(e),
                module=job.__module__,
                function=job.__name__,
                arguments=kwargs,
                job_args=args,
            )

    return wrapper


def scheduler_heartbeat():
    logger.info(
        "running_scheduler_heartbeat", module="scheduled_tasks", time=time.ctime()
    )


@dataclass
class _Registration:
    interval_seconds: float
    func: Callable[[], Any]
    is_async: bool
    slows_down: bool


class ScheduledTasks:
    """Registry of recurring jobs on one scheduler.

    Args:
        scheduler: Scheduler instance; a new one is created when omitted
    """

    def __init__(self, scheduler: Optional[schedule.Scheduler] = None):
        self.scheduler = scheduler or schedule.Scheduler()
        self.multiplier = 1.0
        self._registrations: Dict[str, _Registration] = {}
        self._running: Dict[str, asyncio.Task] = {}

    def add(
        self,
        name: str,
        interval_seconds: float,
        func: Callable[[], Any],
        is_async: bool = True,
        slows_down: bool = False,
    ) -> None:
        """Register ``func`` to run every ``interval_seconds``.

        Args:
            name: Job name, also used as the scheduler tag
            interval_seconds: Base interval
            func: Coroutine function (``is_async``) or plain function
            is_async: Spawn ``func()`` as a task instead of calling it inline
            slows_down: The interval is multiplied while a slowdown is applied
        """
        self._registrations[name] = _Registration(
            interval_seconds=interval_seconds,
            func=func,
            is_async=is_async,
            slows_down=slows_down,
        )
        self._schedule(name)

    def interval_for(self, name: str) -> int:
        registration = self._registrations[name]
        multiplier = self.multiplier if registration.slows_down else 1.0
        return max(int(round(registration.interval_seconds * multiplier)), 1)

    def _schedule(self, name: str) -> None:
        registration = self._registrations[name]
        self.scheduler.clear(name)
        job = self.spawn if registration.is_async else registration.func
        args = (name, registration.func) if registration.is_async else ()
        self.scheduler.every(self.interval_for(name)).seconds.do(
            safe_run(job), *args
        ).tag(name)

    def apply_slowdown(self, multiplier: float) -> None:
        """Reschedule slowing jobs at ``interval * multiplier``; 1.0 restores."""
        if multiplier < 1:
            raise ValueError("multiplier must be at least 1")
        self.multiplier = multiplier
        for name, registration in self._registrations.items():
            if registration.slows_down:
                self._schedule(name)
        logger.info(
            "scheduler_slowdown_applied",
            multiplier=multiplier,
            intervals={
                name: self.interval_for(name)
                for name, registration in self._registrations.items()
                if registration.slows_down
            },
        )

    def spawn(
        self, name: str, factory: Callable[[], Awaitable[Any]]
    ) -> Optional[asyncio.Task]:
        """Start ``factory()`` as a task unless the previous run is still going."""
        previous = self._running.get(name)
        if previous is not None and not previous.done():
            logger.warning("scheduled_job_overlap_skipped", job=name)
            return None
        task = asyncio.get_running_loop().create_task(self._run(name, factory))
        self._running[name] = task
        return task

    async def _run(self, name: str, factory: Callable[[], Awaitable[Any]]) -> None:
        started = time.monotonic()
        try:
            await factory()
        except Exception as e:
            logger.error(
                "scheduled_job_failed", job=name, error=str(e), exc_info=True
            )
        else:
            logger.debug(
                "scheduled_job_completed",
                job=name,
                duration_seconds=round(time.monotonic() - started, 3),
            )

    async def run_continuously(
        self, interval: float = 1, stop: Optional[asyncio.Event] = None
    ) -> None:
        """Run pending jobs every ``interval`` seconds until ``stop`` is set.

        Missed runs are not replayed: a job that became due several times
        while the loop was busy runs once.
        """
        stop = stop or asyncio.Event()
        logger.info("scheduler_started", jobs=sorted(self._registrations))
        while not stop.is_set():
            self.scheduler.run_pending()
            await asyncio.sleep(interval)
        await self.drain()

    async def drain(self) -> None:
        """Wait for in-flight job runs to finish."""
        pending = [task for task in self._running.values() if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


def init(
    tasks: ScheduledTasks,
    settings: Settings,
    schedule_monitor,
    presence_monitor,
    capacity_monitor,
    alerts,
) -> ScheduledTasks:
    """Register every recurring trigger of the service."""
    logger.info("initializing_scheduled_tasks")

    tasks.add(
        SCHEDULE_CHECK,
        settings.feed.check_interval_seconds,
        schedule_monitor.check_all,
        slows_down=True,
    )
    tasks.add(
        PROBE_CHECK,
        settings.presence.check_interval_seconds,
        presence_monitor.check_all,
        slows_down=True,
    )
    tasks.add(
        CAPACITY_CHECK,
        settings.capacity.check_interval_seconds,
        capacity_monitor.check,
    )
    tasks.add(
        CAPACITY_SUMMARY,
        settings.capacity.summary_interval_seconds,
        capacity_monitor.log_summary,
        is_async=False,
    )
    tasks.add(
        ALERT_SWEEP,
        settings.alerts.sweep_interval_seconds,
        alerts.sweep,
        is_async=False,
    )
    tasks.add(SCHEDULER_HEARTBEAT, 300, scheduler_heartbeat, is_async=False)
    return tasks
