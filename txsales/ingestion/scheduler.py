"""
Refresh Scheduler

Background task that runs the incremental import once at startup and then at
the top of every hour in the configured timezone. A failed run is logged and
the schedule carries on.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional
from zoneinfo import ZoneInfo

import structlog

from txsales.config.logging import import_run_context
from txsales.ingestion.importer import IncrementalImporter

logger = structlog.get_logger(__name__)

UTC = timezone.utc


def seconds_until_next_run(now: datetime) -> float:
    """
    Seconds from now to the next top of the hour.

    Computed in UTC so the DST changeover nights give the real elapsed time.
    """
    now_utc = now.astimezone(UTC)
    next_run = now_utc.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    return (next_run - now_utc).total_seconds()


class RefreshScheduler:
    """Hourly incremental import worker"""

    def __init__(
        self,
        importer: IncrementalImporter,
        timezone: str = "America/Chicago",
        run_on_startup: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.importer = importer
        self.timezone = ZoneInfo(timezone)
        self.run_on_startup = run_on_startup
        self._clock = clock or (lambda: datetime.now(self.timezone))
        self.running = False
        self.task: Optional[asyncio.Task] = None
        self.runs = 0
        self.failures = 0
        self.last_run_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.next_run_at: Optional[datetime] = None

    async def start(self) -> None:
        if self.running:
            logger.warning("Refresh scheduler is already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._run())
        logger.info("Refresh scheduler started", timezone=str(self.timezone))

    async def stop(self) -> None:
        if not self.running:
            return

        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        logger.info("Refresh scheduler stopped", runs=self.runs, failures=self.failures)

    async def _run(self) -> None:
        if self.run_on_startup:
            await self.refresh("startup")

        while self.running:
            now = self._clock()
            delay = seconds_until_next_run(now)
            next_run = now.astimezone(UTC) + timedelta(seconds=delay)
            self.next_run_at = next_run.astimezone(self.timezone)
            logger.debug("Next scheduled refresh", at=self.next_run_at.isoformat())
            await asyncio.sleep(delay)
            await self.refresh("scheduled")

    async def refresh(self, trigger: str) -> None:
        """Run one incremental import, logging instead of raising on failure"""
        self.runs += 1
        self.last_run_at = self._clock()
        with import_run_context(trigger):
            try:
                result = await self.importer.run_incremental_import()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failures += 1
                self.last_error = str(e)
                logger.error("Scheduled refresh failed", error=str(e), exc_info=True)
                return

            self.last_error = None
            logger.info(
                "Scheduled refresh finished",
                status=result.status.value,
                imported=result.imported,
            )

    @property
    def status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "runs": self.runs,
            "failures": self.failures,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "next_run_at": self.next_run_at.isoformat() if self.next_run_at else None,
            "last_error": self.last_error,
        }
