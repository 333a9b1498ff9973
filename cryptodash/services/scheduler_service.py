"""Scheduler service for periodic snapshot warm-up."""

from datetime import UTC, datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from cryptodash.services.dashboard_service import DashboardService
from cryptodash.utils.logger import StructuredLogger
from cryptodash.utils.trace_context import clear_trace, create_trace

WARMUP_JOB_ID = "snapshot_warmup"


class SchedulerService:
    """Keeps the disk snapshot warm by refreshing the default instruments on an interval."""

    def __init__(self, dashboard: DashboardService, ids: list[str], interval_minutes: int):
        """
        Initialize scheduler service.

        Args:
            dashboard: Service whose refresh cycle is run
            ids: Instruments to refresh
            interval_minutes: Minutes between runs; 0 disables the job
        """
        self.scheduler = AsyncIOScheduler(timezone=UTC)
        self.dashboard = dashboard
        self.ids = ids
        self.interval_minutes = interval_minutes
        self.is_running = False
        self.last_run: dict | None = None
        self.logger = StructuredLogger("SchedulerService")

    def start(self) -> bool:
        """
        Start the warm-up job. Must be called from a running event loop.

        Returns:
            True if the scheduler was started
        """
        if self.interval_minutes <= 0:
            self.logger.info("Snapshot warm-up disabled")
            return False
        if self.is_running:
            return True

        self.scheduler.add_job(
            self.run_warmup,
            IntervalTrigger(minutes=self.interval_minutes),
            id=WARMUP_JOB_ID,
            name="Snapshot warm-up",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(UTC),
        )
        self.scheduler.start()
        self.is_running = True
        self.logger.info(
            "Snapshot warm-up scheduled",
            context={"interval_minutes": self.interval_minutes, "instruments": len(self.ids)},
        )
        return True

    def stop(self) -> None:
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            self.logger.info("Scheduler stopped")

    async def run_warmup(self) -> bool:
        """Run one warm-up refresh under its own trace."""
        trace_id = create_trace()
        try:
            ok = await self.dashboard.warm(self.ids)
            self.last_run = {
                "trace_id": trace_id,
                "finished_at": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
                "status": "success" if ok else "failed",
            }
            return ok
        finally:
            clear_trace()

    def get_status(self) -> dict:
        """Scheduler state for the metrics endpoint."""
        next_run = None
        if self.is_running:
            job = self.scheduler.get_job(WARMUP_JOB_ID)
            if job is not None and job.next_run_time is not None:
                next_run = job.next_run_time.isoformat()
        return {
            "enabled": self.interval_minutes > 0,
            "running": self.is_running,
            "interval_minutes": self.interval_minutes,
            "next_run_time": next_run,
            "last_run": self.last_run,
        }
