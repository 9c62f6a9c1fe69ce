"""APScheduler-backed simulation of the delayed log analysis.

Each new ticket gets a one-shot DateTrigger job that writes a canned
LogAnalysis a couple of seconds later and flips the ticket to
``log_analysis``.  Jobs are tracked in a pending map so tests (and the
shutdown path) can run or cancel them without waiting on the wall clock.
"""

import contextlib
import logging
import threading
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from types import MappingProxyType

from apscheduler.jobstores.base import JobLookupError  # type: ignore[import-untyped]
from apscheduler.schedulers import SchedulerNotRunningError  # type: ignore[import-untyped]
from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-untyped]
from apscheduler.triggers.date import DateTrigger  # type: ignore[import-untyped]

from cerebro.analysis.canned import DEFAULT_APPLICATION, canned_analysis
from cerebro.observability.metrics import LOG_ANALYSES_TOTAL
from cerebro.store.models import LogAnalysis, TicketStatus
from cerebro.store.store import HelpdeskStore

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 2.0

TicketUpdateCallback = Callable[[str], Awaitable[None]]


@dataclass(frozen=True)
class PendingAnalysis:
    job_id: str
    ticket_id: str
    application: str
    run_at: datetime
    fallback_application: str
    set_status: bool
    trigger: str


class AnalysisSimulator:
    """Schedules canned log analyses for tickets."""

    def __init__(
        self,
        store: HelpdeskStore,
        *,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        on_ticket_update: TicketUpdateCallback | None = None,
    ) -> None:
        self._store = store
        self._delay_seconds = delay_seconds
        self._on_ticket_update = on_ticket_update
        self._scheduler = AsyncIOScheduler()
        self._pending: dict[str, PendingAnalysis] = {}
        self._lock = threading.Lock()

    @property
    def pending(self) -> Mapping[str, PendingAnalysis]:
        return MappingProxyType(self._pending)

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def start(self) -> None:
        """Start the scheduler. Must be called from within a running event loop."""
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Analysis simulator started (delay %.1fs)", self._delay_seconds)

    def shutdown(self) -> None:
        """Cancel every pending analysis and stop the scheduler."""
        with self._lock:
            cancelled = len(self._pending)
            self._pending.clear()
        self._scheduler.remove_all_jobs()
        with contextlib.suppress(SchedulerNotRunningError):
            self._scheduler.shutdown(wait=False)
        logger.info("Analysis simulator stopped (%d pending analyses cancelled)", cancelled)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule(
        self,
        ticket_id: str,
        application: str,
        *,
        delay_seconds: float | None = None,
        fallback_application: str = DEFAULT_APPLICATION,
        set_status: bool = True,
        trigger: str = "ticket_created",
    ) -> str:
        """Schedule a one-shot analysis for a ticket.

        Args:
            ticket_id: Ticket the analysis is written for.
            application: Selects the canned record.
            delay_seconds: Overrides the simulator's default delay.
            fallback_application: Record used when ``application`` has none.
            set_status: Whether the job moves the ticket to ``log_analysis``.
            trigger: Metric label describing who asked for the analysis.

        Returns:
            The scheduler job id. Rescheduling a ticket replaces its pending job.
        """
        delay = self._delay_seconds if delay_seconds is None else delay_seconds
        job_id = f"analysis-{ticket_id}"
        entry = PendingAnalysis(
            job_id=job_id,
            ticket_id=ticket_id,
            application=application,
            run_at=datetime.now(UTC) + timedelta(seconds=delay),
            fallback_application=fallback_application,
            set_status=set_status,
            trigger=trigger,
        )
        with self._lock:
            self._pending[job_id] = entry

        self._scheduler.add_job(
            self._run_job,
            trigger=DateTrigger(run_date=entry.run_at),
            args=[job_id],
            id=job_id,
            name=f"Log analysis for ticket {ticket_id}",
            replace_existing=True,
            misfire_grace_time=None,
        )
        logger.info("Scheduled log analysis for ticket %s (%s) in %.1fs", ticket_id, application, delay)
        return job_id

    async def flush(self) -> int:
        """Run every pending analysis now. Returns how many ran."""
        with self._lock:
            entries = list(self._pending.values())
            self._pending.clear()

        for entry in entries:
            with contextlib.suppress(JobLookupError):
                self._scheduler.remove_job(entry.job_id)
            await self._execute(entry)
        return len(entries)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run_analysis(
        self,
        ticket_id: str,
        application: str,
        *,
        fallback_application: str = DEFAULT_APPLICATION,
        set_status: bool = True,
        trigger: str = "manual",
    ) -> LogAnalysis:
        """Write the canned analysis for a ticket right away."""
        record = canned_analysis(application, fallback_application)
        analysis = self._store.create_log_analysis(ticket_id=ticket_id, **record.as_fields())
        if set_status:
            self._store.update_ticket_status(ticket_id, TicketStatus.LOG_ANALYSIS)
        LOG_ANALYSES_TOTAL.labels(trigger=trigger, status="success").inc()
        logger.info("Log analysis written for ticket %s: %s", ticket_id, analysis.error_pattern)
        return analysis

    async def _run_job(self, job_id: str) -> None:
        """Async job executed by the scheduler."""
        with self._lock:
            entry = self._pending.pop(job_id, None)
        if entry is None:
            return
        await self._execute(entry)

    async def _execute(self, entry: PendingAnalysis) -> None:
        try:
            self.run_analysis(
                entry.ticket_id,
                entry.application,
                fallback_application=entry.fallback_application,
                set_status=entry.set_status,
                trigger=entry.trigger,
            )
        except Exception:
            LOG_ANALYSES_TOTAL.labels(trigger=entry.trigger, status="error").inc()
            logger.exception("Log analysis for ticket %s failed", entry.ticket_id)
            return

        if self._on_ticket_update is not None:
            try:
                await self._on_ticket_update(entry.ticket_id)
            except Exception:
                logger.exception("Ticket update notification failed for %s", entry.ticket_id)
