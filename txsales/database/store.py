"""
Aggregate Store

Owns both sales tables. Write operations serve the importer (key lookups,
batch inserts, summary upserts); read operations build LocationSummary read
models with the aggregation done in SQL:

- get_all: GROUP BY permit over the fact table, optionally date-bounded
- get_by_permit: whole-history aggregate for one permit
- search_by_name: substring match on the establishments table

Descriptive columns are aggregated with MAX() because spelling of a city or
address can drift between periods and grouping on them would split a permit
into several rows. MAX() over text picks the greatest value, not the most
recent one.
"""

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import structlog
from sqlalchemy import and_, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from txsales.database.models import Establishment, MonthlySale
from txsales.schemas import LocationSummary, MonthlySalesRead

logger = structlog.get_logger(__name__)

SalesKey = Tuple[str, date]

# Keeps IN (...) lists and multi-row VALUES under driver parameter limits
PERMIT_CHUNK_SIZE = 500


def _float(value) -> float:
    return float(value) if value is not None else 0.0


def _chunks(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _aggregate_columns() -> list:
    """SELECT list shared by every per-permit aggregate query"""
    return [
        MonthlySale.permit_number,
        func.max(MonthlySale.location_name).label("location_name"),
        func.max(MonthlySale.location_address).label("location_address"),
        func.max(MonthlySale.location_city).label("location_city"),
        func.max(MonthlySale.location_county).label("location_county"),
        func.max(MonthlySale.location_zip).label("location_zip"),
        func.max(MonthlySale.taxpayer_name).label("taxpayer_name"),
        func.max(MonthlySale.lat).label("lat"),
        func.max(MonthlySale.lng).label("lng"),
        func.sum(MonthlySale.total_receipts).label("total_sales"),
        func.sum(MonthlySale.liquor_receipts).label("liquor_sales"),
        func.sum(MonthlySale.wine_receipts).label("wine_sales"),
        func.sum(MonthlySale.beer_receipts).label("beer_sales"),
        func.sum(MonthlySale.cover_charge_receipts).label("cover_charge_sales"),
        func.max(MonthlySale.obligation_end_date).label("latest_month"),
    ]


def _date_conditions(start_date: Optional[date], end_date: Optional[date]) -> list:
    conditions = []
    if start_date is not None:
        conditions.append(MonthlySale.obligation_end_date >= start_date)
    if end_date is not None:
        conditions.append(MonthlySale.obligation_end_date <= end_date)
    return conditions


def to_monthly_read(record: MonthlySale) -> MonthlySalesRead:
    """ORM row to read model; the Decimal -> float boundary"""
    return MonthlySalesRead(
        permit_number=record.permit_number,
        location_name=record.location_name,
        location_address=record.location_address,
        location_city=record.location_city,
        location_county=record.location_county,
        location_zip=record.location_zip,
        taxpayer_name=record.taxpayer_name,
        obligation_end_date=record.obligation_end_date,
        liquor_receipts=_float(record.liquor_receipts),
        wine_receipts=_float(record.wine_receipts),
        beer_receipts=_float(record.beer_receipts),
        cover_charge_receipts=_float(record.cover_charge_receipts),
        total_receipts=_float(record.total_receipts),
        lat=_float(record.lat),
        lng=_float(record.lng),
    )


def to_location_summary(row, records: List[MonthlySalesRead]) -> LocationSummary:
    """Aggregate row (or Establishment) plus its records to a LocationSummary"""
    return LocationSummary(
        permit_number=row.permit_number,
        location_name=row.location_name,
        location_address=row.location_address,
        location_city=row.location_city,
        location_county=row.location_county,
        location_zip=row.location_zip,
        taxpayer_name=row.taxpayer_name,
        lat=_float(row.lat),
        lng=_float(row.lng),
        total_sales=_float(row.total_sales),
        liquor_sales=_float(row.liquor_sales),
        wine_sales=_float(row.wine_sales),
        beer_sales=_float(row.beer_sales),
        cover_charge_sales=_float(row.cover_charge_sales),
        latest_month=row.latest_month,
        monthly_records=records,
    )


def _upsert_insert(dialect_name: str):
    """Dialect insert() that supports ON CONFLICT"""
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as dialect_insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as dialect_insert
    else:
        raise NotImplementedError(f"Upsert not supported for dialect: {dialect_name}")
    return dialect_insert


class SalesStore:
    """
    Read and write access to monthly_sales and establishments.

    Every public method opens its own session, so insert batches commit
    independently of each other.

    Example:
        store = SalesStore(get_session_factory())
        locations = await store.get_all(date(2024, 1, 1), date(2024, 12, 31))
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        search_limit: int = 50,
    ):
        self._session_factory = session_factory
        self.search_limit = search_limit

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory

    # ------------------------------------------------------------------
    # Write side (importer)
    # ------------------------------------------------------------------

    async def get_latest_date(self) -> Optional[date]:
        """Most recent obligation end date in the fact table"""
        async with self._session_factory() as session:
            result = await session.execute(select(func.max(MonthlySale.obligation_end_date)))
            return result.scalar()

    async def count_records(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> int:
        """Fact rows in an inclusive date window"""
        query = select(func.count(MonthlySale.id))
        conditions = _date_conditions(start_date, end_date)
        if conditions:
            query = query.where(and_(*conditions))
        async with self._session_factory() as session:
            return (await session.execute(query)).scalar() or 0

    async def get_existing_keys(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Set[SalesKey]:
        """(permit, date) keys already stored in an inclusive date window"""
        query = select(MonthlySale.permit_number, MonthlySale.obligation_end_date)
        conditions = _date_conditions(start_date, end_date)
        if conditions:
            query = query.where(and_(*conditions))

        async with self._session_factory() as session:
            result = await session.execute(query)
            return {(row.permit_number, row.obligation_end_date) for row in result}

    async def insert_batch(self, rows: List[dict], refresh_summaries: bool = False) -> int:
        """
        Insert fact rows in a single transaction of their own.

        With refresh_summaries the establishment summaries of the batch's
        permits are upserted in the same transaction, so a committed batch
        never leaves its permits without an up-to-date summary.
        """
        if not rows:
            return 0
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(insert(MonthlySale), rows)
                if refresh_summaries:
                    await self._upsert_summaries(session, {row["permit_number"] for row in rows})
        return len(rows)

    async def refresh_establishments(self, permit_numbers: Iterable[str]) -> int:
        """
        Recompute and upsert establishment summaries from the fact table.

        Args:
            permit_numbers: Permits whose fact rows changed

        Returns:
            Number of establishments written
        """
        async with self._session_factory() as session:
            async with session.begin():
                written = await self._upsert_summaries(session, permit_numbers)

        logger.info("Refreshed establishment summaries", establishments=written)
        return written

    async def _upsert_summaries(self, session: AsyncSession, permit_numbers: Iterable[str]) -> int:
        permits = sorted(set(permit_numbers))
        if not permits:
            return 0

        written = 0
        dialect_insert = _upsert_insert(session.bind.dialect.name)
        for chunk in _chunks(permits, PERMIT_CHUNK_SIZE):
            result = await session.execute(
                select(*_aggregate_columns())
                .where(MonthlySale.permit_number.in_(chunk))
                .group_by(MonthlySale.permit_number)
            )
            rows = [dict(row._mapping) for row in result]
            if not rows:
                continue

            stmt = dialect_insert(Establishment).values(rows)
            update_columns = {
                name: stmt.excluded[name]
                for name in rows[0]
                if name != "permit_number"
            }
            update_columns["updated_at"] = func.now()
            stmt = stmt.on_conflict_do_update(
                index_elements=[Establishment.permit_number],
                set_=update_columns,
            )
            await session.execute(stmt)
            written += len(rows)
        return written

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def _records_by_permit(
        self,
        session: AsyncSession,
        conditions: list,
    ) -> Dict[str, List[MonthlySalesRead]]:
        query = select(MonthlySale).order_by(
            MonthlySale.permit_number,
            MonthlySale.obligation_end_date.desc(),
        )
        if conditions:
            query = query.where(and_(*conditions))

        result = await session.execute(query)
        grouped: Dict[str, List[MonthlySalesRead]] = defaultdict(list)
        for record in result.scalars():
            grouped[record.permit_number].append(to_monthly_read(record))
        return grouped

    async def get_all(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[LocationSummary]:
        """
        Aggregate every permit, optionally over an inclusive date window.

        Totals are computed from the in-window rows only, and each summary
        carries exactly those rows, newest first.
        """
        conditions = _date_conditions(start_date, end_date)

        query = (
            select(*_aggregate_columns())
            .group_by(MonthlySale.permit_number)
            .order_by(func.sum(MonthlySale.total_receipts).desc())
        )
        if conditions:
            query = query.where(and_(*conditions))

        async with self._session_factory() as session:
            aggregates = (await session.execute(query)).all()
            records = await self._records_by_permit(session, conditions)

        locations = [
            to_location_summary(row, records.get(row.permit_number, []))
            for row in aggregates
        ]
        logger.info(
            "Aggregated locations",
            locations=len(locations),
            start_date=str(start_date) if start_date else None,
            end_date=str(end_date) if end_date else None,
        )
        return locations

    async def get_by_permit(self, permit_number: str) -> Optional[LocationSummary]:
        """Whole-history aggregate for one permit, None if it has no rows"""
        conditions = [MonthlySale.permit_number == permit_number]
        query = (
            select(*_aggregate_columns())
            .where(and_(*conditions))
            .group_by(MonthlySale.permit_number)
        )

        async with self._session_factory() as session:
            row = (await session.execute(query)).first()
            if row is None:
                return None
            records = await self._records_by_permit(session, conditions)

        return to_location_summary(row, records.get(permit_number, []))

    async def search_by_name(
        self,
        name: str,
        limit: Optional[int] = None,
    ) -> List[LocationSummary]:
        """
        Case-insensitive substring search on establishment names.

        Matches against the summary table, then loads monthly records for
        the matched permits only.
        """
        limit = min(limit or self.search_limit, self.search_limit)
        pattern = f"%{_escape_like(name.strip())}%"

        async with self._session_factory() as session:
            result = await session.execute(
                select(Establishment)
                .where(Establishment.location_name.ilike(pattern, escape="\\"))
                .order_by(Establishment.total_sales.desc())
                .limit(limit)
            )
            establishments = result.scalars().all()
            if not establishments:
                return []

            permits = [e.permit_number for e in establishments]
            records = await self._records_by_permit(
                session, [MonthlySale.permit_number.in_(permits)]
            )

        return [
            to_location_summary(e, records.get(e.permit_number, []))
            for e in establishments
        ]

    async def get_permit_history(self, permit_number: str) -> List[MonthlySalesRead]:
        """All monthly records of one permit, oldest first"""
        async with self._session_factory() as session:
            result = await session.execute(
                select(MonthlySale)
                .where(MonthlySale.permit_number == permit_number)
                .order_by(MonthlySale.obligation_end_date.asc())
            )
            return [to_monthly_read(record) for record in result.scalars()]
