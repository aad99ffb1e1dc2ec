"""
Deduplicating Importer

Keeps the monthly_sales fact table in step with the upstream dataset:

- Incremental: re-fetch from the latest stored period to today, insert only
  (permit, period) keys not yet stored
- Bulk: load one calendar year, skipped when the year already has rows

Rows go in fixed-size batches that commit independently, each together with
the summaries of its permits, so a failed run can leave earlier batches
behind but never a fact row without its summary; re-running is idempotent
because of the key filter. Both entry points share one lock, so overlapping
triggers queue up instead of racing on the same keys.
"""

import asyncio
import time
from datetime import date, datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple
from zoneinfo import ZoneInfo

import structlog
from pydantic import BaseModel

from txsales.database.store import SalesStore
from txsales.ingestion.texas_client import FetchedLocation, SalesKey, TexasSalesClient
from txsales.quality.validators import create_monthly_sales_validator, records_to_frame
from txsales.serving.cache import QueryCache

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 1000
DEFAULT_TIMEZONE = "America/Chicago"


class ImportStatus(str, Enum):
    """Outcome of an import run"""
    COMPLETED = "completed"
    UP_TO_DATE = "up_to_date"
    NO_NEW_RECORDS = "no_new_records"
    NO_BASELINE = "no_baseline"
    SKIPPED = "skipped"


class ImportResult(BaseModel):
    """Result of an import run"""
    status: ImportStatus
    imported: int = 0
    message: str
    latest_date: Optional[date] = None
    previous_latest_date: Optional[date] = None
    permits_refreshed: int = 0
    duration_seconds: float = 0


def flatten(locations: Iterable[FetchedLocation]) -> List[dict]:
    """Fetched locations to monthly_sales rows"""
    return [
        record.to_row()
        for location in locations
        for record in location.monthly_records
    ]


def select_new_rows(rows: List[dict], existing: Set[SalesKey]) -> Tuple[List[dict], int]:
    """
    Drop rows whose key is already stored or already seen earlier in rows.

    Returns:
        (new rows, number of keys that were duplicated within rows)
    """
    seen = set(existing)
    fresh = []
    repeated = 0
    for row in rows:
        key = (row["permit_number"], row["obligation_end_date"])
        if key in seen:
            if key not in existing:
                repeated += 1
            continue
        seen.add(key)
        fresh.append(row)
    return fresh, repeated


class IncrementalImporter:
    """
    Fetches new upstream periods and persists them.

    Example:
        importer = IncrementalImporter(store, TexasSalesClient(), cache)
        result = await importer.run_incremental_import()
    """

    def __init__(
        self,
        store: SalesStore,
        client: TexasSalesClient,
        cache: QueryCache,
        batch_size: int = DEFAULT_BATCH_SIZE,
        timezone: str = DEFAULT_TIMEZONE,
        today: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.client = client
        self.cache = cache
        self.batch_size = batch_size
        self.timezone = ZoneInfo(timezone)
        self._today = today or (lambda: datetime.now(self.timezone).date())
        self._lock = asyncio.Lock()
        self.last_result: Optional[ImportResult] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def _validate(self, rows: List[dict]) -> None:
        """Log data quality findings; never blocks the import"""
        if not rows:
            return
        result = create_monthly_sales_validator().validate(records_to_frame(rows))
        logger.info(
            "Fetched rows validated",
            status=result.status.value,
            rows=len(rows),
            failed_checks=result.failed_checks,
            warnings=result.warning_count,
        )

    async def _persist(self, rows: List[dict]) -> Tuple[int, int]:
        """
        Insert rows batch by batch and clear the query cache.

        Each batch upserts the summaries of its own permits in the same
        transaction, so batches committed before a failure stay consistent
        and a re-run only has the remaining keys left to insert. The cache is
        cleared whenever at least one batch committed, failure or not.
        """
        inserted = 0
        permits: Set[str] = set()
        try:
            for i in range(0, len(rows), self.batch_size):
                batch = rows[i:i + self.batch_size]
                inserted += await self.store.insert_batch(batch, refresh_summaries=True)
                permits.update(row["permit_number"] for row in batch)
                logger.debug("Inserted batch", batch_rows=len(batch), inserted=inserted)
        finally:
            if inserted:
                self.cache.clear()

        logger.info("Refreshed establishment summaries", establishments=len(permits))
        return inserted, len(permits)

    async def run_incremental_import(self) -> ImportResult:
        """
        Import every period newer than or equal to the latest stored one.

        Raises:
            UpstreamFetchError: When the upstream fetch fails
        """
        async with self._lock:
            result = await self._run_incremental()
        self.last_result = result
        return result

    async def _run_incremental(self) -> ImportResult:
        started = time.perf_counter()

        previous_latest = await self.store.get_latest_date()
        if previous_latest is None:
            logger.warning("No baseline data, incremental import skipped")
            return ImportResult(
                status=ImportStatus.NO_BASELINE,
                message="No existing data found. Run full import first.",
            )

        today = self._today()
        logger.info("Starting incremental import", start_date=str(previous_latest), end_date=str(today))

        locations = await self.client.fetch_all_sales(start_date=previous_latest, end_date=today)
        rows = flatten(locations)
        if not rows:
            logger.info("No upstream records in window", start_date=str(previous_latest))
            return ImportResult(
                status=ImportStatus.UP_TO_DATE,
                message="Database is already up to date",
                latest_date=previous_latest,
                previous_latest_date=previous_latest,
                duration_seconds=time.perf_counter() - started,
            )

        self._validate(rows)

        existing = await self.store.get_existing_keys(previous_latest, today)
        new_rows, repeated = select_new_rows(rows, existing)
        logger.info(
            "Filtered fetched records",
            fetched=len(rows),
            existing=len(existing),
            new=len(new_rows),
            repeated=repeated,
        )

        if not new_rows:
            return ImportResult(
                status=ImportStatus.NO_NEW_RECORDS,
                message="Fetched records but found no new unique records",
                latest_date=previous_latest,
                previous_latest_date=previous_latest,
                duration_seconds=time.perf_counter() - started,
            )

        imported, refreshed = await self._persist(new_rows)

        latest = await self.store.get_latest_date()
        result = ImportResult(
            status=ImportStatus.COMPLETED,
            imported=imported,
            message=f"Imported {imported} new records",
            latest_date=latest,
            previous_latest_date=previous_latest,
            permits_refreshed=refreshed,
            duration_seconds=time.perf_counter() - started,
        )
        logger.info(
            "Incremental import complete",
            imported=imported,
            permits=refreshed,
            latest_date=str(latest),
            duration_ms=round(result.duration_seconds * 1000, 2),
        )
        return result

    async def run_bulk_import(self, year: int) -> ImportResult:
        """
        Load one full calendar year.

        Skipped when any row of that year is already stored; use the
        incremental import to top up a partially loaded year.
        """
        async with self._lock:
            result = await self._run_bulk(year)
        self.last_result = result
        return result

    async def _run_bulk(self, year: int) -> ImportResult:
        started = time.perf_counter()
        start_date, end_date = date(year, 1, 1), date(year, 12, 31)
        previous_latest = await self.store.get_latest_date()

        existing_count = await self.store.count_records(start_date, end_date)
        if existing_count > 0:
            logger.info("Year already loaded, skipping", year=year, records=existing_count)
            return ImportResult(
                status=ImportStatus.SKIPPED,
                message=f"{year} already has {existing_count} records",
                latest_date=previous_latest,
                previous_latest_date=previous_latest,
            )

        logger.info("Starting bulk import", year=year)
        locations = await self.client.fetch_all_sales(start_date=start_date, end_date=end_date)
        rows, repeated = select_new_rows(flatten(locations), set())
        if not rows:
            return ImportResult(
                status=ImportStatus.UP_TO_DATE,
                message=f"No upstream records for {year}",
                latest_date=previous_latest,
                previous_latest_date=previous_latest,
                duration_seconds=time.perf_counter() - started,
            )

        self._validate(rows)
        imported, refreshed = await self._persist(rows)

        latest = await self.store.get_latest_date()
        result = ImportResult(
            status=ImportStatus.COMPLETED,
            imported=imported,
            message=f"Imported {imported} records for {year}",
            latest_date=latest,
            previous_latest_date=previous_latest,
            permits_refreshed=refreshed,
            duration_seconds=time.perf_counter() - started,
        )
        logger.info(
            "Bulk import complete",
            year=year,
            imported=imported,
            repeated=repeated,
            permits=refreshed,
            duration_ms=round(result.duration_seconds * 1000, 2),
        )
        return result

    def status(self) -> Dict[str, object]:
        last = self.last_result
        return {
            "running": self.is_running,
            "last_status": last.status.value if last else None,
            "last_imported": last.imported if last else None,
            "last_latest_date": str(last.latest_date) if last and last.latest_date else None,
        }
