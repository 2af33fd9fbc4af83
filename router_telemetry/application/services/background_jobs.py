"""
Background job scheduler.

Each registered job owns a cron schedule and an asyncio timer task. Timer
fires spawn the job body as its own task, so a slow or failing body never
shifts the schedule and stopping a job never cancels a run in progress.
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from datetime import timezone as dt_timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from router_telemetry.domain.entities.device import JobStatus, ScheduledJob
from router_telemetry.domain.errors import JobExecutionError
from router_telemetry.utils.cron import CronExpression
from router_telemetry.utils.timezone import now_in, resolve_timezone

logger = logging.getLogger(__name__)

JobBody = Callable[[], Awaitable[Any]]


@dataclass
class _JobEntry:
    job: ScheduledJob
    body: JobBody
    cron: CronExpression
    timer: Optional[asyncio.Task] = None
    running: bool = False
    last_error: Optional[JobExecutionError] = None

    @property
    def is_started(self) -> bool:
        return self.timer is not None and not self.timer.done()


class JobScheduler:
    """Registry of cron-scheduled async jobs with manual triggering."""

    def __init__(self,
                 timezone: Optional[str] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        """
        Args:
            timezone: IANA name cron schedules are evaluated in (UTC by default)
            clock: Current-time source; defaults to the wall clock in ``timezone``
            sleep: Awaitable used to wait until the next fire time
        """
        self.tz = resolve_timezone(timezone)
        self.clock = clock or (lambda: now_in(self.tz))
        self.sleep = sleep
        self._jobs: Dict[str, _JobEntry] = OrderedDict()
        self._inflight: Set[asyncio.Task] = set()

    def register(self,
                 job_id: str,
                 name: str,
                 description: str,
                 schedule: str,
                 body: JobBody,
                 enabled: bool = True) -> ScheduledJob:
        """
        Add a job to the registry without starting its timer.

        Raises:
            InvalidScheduleError: ``schedule`` is not a valid cron expression
            ValueError: ``job_id`` is already registered
        """
        if job_id in self._jobs:
            raise ValueError(f"Job '{job_id}' is already registered")
        cron = CronExpression.parse(schedule)
        job = ScheduledJob(id=job_id, name=name, description=description, schedule=schedule, enabled=enabled)
        self._jobs[job_id] = _JobEntry(job=job, body=body, cron=cron)
        logger.info(f"Registered job {job_id} ({schedule}), enabled={enabled}")
        return job

    def get_jobs(self) -> List[ScheduledJob]:
        return [entry.job for entry in self._jobs.values()]

    def get_job(self, job_id: str) -> Optional[ScheduledJob]:
        entry = self._jobs.get(job_id)
        return entry.job if entry else None

    def is_running(self, job_id: str) -> bool:
        entry = self._jobs.get(job_id)
        return bool(entry and entry.running)

    def _entry(self, job_id: str, action: str) -> Optional[_JobEntry]:
        entry = self._jobs.get(job_id)
        if entry is None:
            logger.warning(f"Cannot {action} unknown job '{job_id}'")
        return entry

    def start(self, job_id: str) -> bool:
        """
        Start the job's timer. Must be called from a running event loop.

        Returns:
            False when the job is unknown
        """
        entry = self._entry(job_id, "start")
        if entry is None:
            return False
        entry.job.enabled = True
        if entry.is_started:
            return True
        entry.job.next_run = entry.cron.next_after(self.clock())
        entry.timer = asyncio.create_task(self._timer_loop(entry), name=f"job-timer:{job_id}")
        logger.info(f"▶️  Job {job_id} started, next run at {entry.job.next_run}")
        return True

    def stop(self, job_id: str) -> bool:
        """Cancel the timer; a run already in progress is left to finish."""
        entry = self._entry(job_id, "stop")
        if entry is None:
            return False
        entry.job.enabled = False
        entry.job.next_run = None
        if entry.timer is not None:
            entry.timer.cancel()
            entry.timer = None
        logger.info(f"⏹️  Job {job_id} stopped")
        return True

    def update_schedule(self, job_id: str, schedule: str) -> bool:
        """
        Replace the job's cron expression, keeping its started/stopped state.

        Returns:
            False when the job is unknown

        Raises:
            InvalidScheduleError: the new expression is invalid; the old
                schedule and timer are left untouched
        """
        entry = self._entry(job_id, "reschedule")
        if entry is None:
            return False
        cron = CronExpression.parse(schedule)

        was_started = entry.is_started
        if entry.timer is not None:
            entry.timer.cancel()
            entry.timer = None
        entry.cron = cron
        entry.job.schedule = schedule
        if was_started:
            self.start(job_id)
        logger.info(f"Job {job_id} rescheduled to '{schedule}'")
        return True

    async def run_now(self, job_id: str) -> bool:
        """
        Execute the job once, outside its schedule.

        Returns:
            True if the body ran, False if the job is unknown or already running
        """
        entry = self._entry(job_id, "run")
        if entry is None:
            return False
        return await self._execute(entry, trigger="manual")

    def start_all(self) -> None:
        for job_id, entry in self._jobs.items():
            if entry.job.enabled:
                self.start(job_id)
        logger.info(f"🚀 Scheduler started {sum(1 for e in self._jobs.values() if e.is_started)} jobs")

    async def shutdown(self) -> None:
        """Cancel every timer and wait for in-flight runs to finish."""
        timers = [entry.timer for entry in self._jobs.values() if entry.timer is not None]
        for entry in self._jobs.values():
            if entry.timer is not None:
                entry.timer.cancel()
                entry.timer = None
            entry.job.next_run = None
        for timer in timers:
            try:
                await timer
            except asyncio.CancelledError:
                pass
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        logger.info("Scheduler shut down")

    async def _timer_loop(self, entry: _JobEntry) -> None:
        last_fire: Optional[datetime] = None
        while True:
            now = self.clock()
            reference = last_fire if last_fire is not None and last_fire > now else now
            next_run = entry.cron.next_after(reference)
            if next_run is None:
                logger.error(f"Job {entry.job.id} has no upcoming run, timer stopped")
                entry.job.next_run = None
                return
            entry.job.next_run = next_run

            # Same-zone subtraction ignores offset changes, so compare in UTC
            delay = (next_run.astimezone(dt_timezone.utc) - now.astimezone(dt_timezone.utc)).total_seconds()
            if delay > 0:
                await self.sleep(delay)
            last_fire = next_run
            self._spawn(entry)

    def _spawn(self, entry: _JobEntry) -> None:
        task = asyncio.create_task(self._execute(entry, trigger="timer"), name=f"job-run:{entry.job.id}")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _execute(self, entry: _JobEntry, trigger: str) -> bool:
        job = entry.job
        if entry.running:
            logger.warning(f"Job {job.id} is still running, skipping {trigger} trigger")
            return False

        entry.running = True
        job.last_run = self.clock()
        job.status = JobStatus.RUNNING
        job.error_message = None
        logger.info(f"🔄 Running job {job.id} ({trigger})")
        try:
            await entry.body()
        except Exception as e:
            entry.last_error = JobExecutionError(job.id, e)
            job.status = JobStatus.ERROR
            job.error_message = str(e) or type(e).__name__
            logger.error(f"❌ {entry.last_error}")
        else:
            job.status = JobStatus.IDLE
            entry.last_error = None
            logger.debug(f"✅ Job {job.id} completed")
        finally:
            entry.running = False
        return True
