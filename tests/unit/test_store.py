"""
Unit Tests - Aggregate Store
"""
from datetime import date

import pytest
from sqlalchemy import select

from txsales.database.models import Establishment
from tests.factories import make_sales_row

JAN, FEB, MAR = date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)


@pytest.fixture
async def seeded(store):
    """Two permits over three months"""
    await store.insert_batch([
        make_sales_row("P1", JAN, 1000, wine=100, beer=50),
        make_sales_row("P1", FEB, 1500, wine=200),
        make_sales_row("P1", MAR, 500),
        make_sales_row("P2", FEB, 4000, name="Big Bar", city="DALLAS", county="DALLAS"),
    ])
    await store.refresh_establishments(["P1", "P2"])
    return store


class TestWriteSide:
    """Tests for importer-facing operations"""

    async def test_latest_date_empty(self, store):
        assert await store.get_latest_date() is None

    async def test_latest_date_and_counts(self, seeded):
        assert await seeded.get_latest_date() == MAR
        assert await seeded.count_records() == 4
        assert await seeded.count_records(FEB, FEB) == 2
        assert await seeded.count_records(date(2024, 1, 1), JAN) == 1

    async def test_existing_keys_window_is_inclusive(self, seeded):
        keys = await seeded.get_existing_keys(FEB, MAR)

        assert keys == {("P1", FEB), ("P1", MAR), ("P2", FEB)}

    async def test_insert_empty_batch(self, store):
        assert await store.insert_batch([]) == 0

    async def test_refresh_establishments_sums(self, seeded, session_factory):
        async with session_factory() as session:
            p1 = await session.get(Establishment, "P1")

        assert float(p1.total_sales) == pytest.approx(3000.0)
        assert float(p1.wine_sales) == pytest.approx(300.0)
        assert float(p1.beer_sales) == pytest.approx(50.0)
        assert p1.latest_month == MAR

    async def test_refresh_establishments_upserts(self, seeded, session_factory):
        await seeded.insert_batch([make_sales_row("P2", MAR, 1000)])
        written = await seeded.refresh_establishments(["P2"])

        async with session_factory() as session:
            rows = (await session.execute(select(Establishment))).scalars().all()
            p2 = await session.get(Establishment, "P2")

        assert written == 1
        assert len(rows) == 2
        assert float(p2.total_sales) == pytest.approx(5000.0)
        assert p2.latest_month == MAR

    async def test_insert_batch_with_summaries(self, seeded, session_factory):
        await seeded.insert_batch(
            [make_sales_row("P3", MAR, 700), make_sales_row("P2", MAR, 300)],
            refresh_summaries=True,
        )

        async with session_factory() as session:
            p2 = await session.get(Establishment, "P2")
            p3 = await session.get(Establishment, "P3")

        assert float(p2.total_sales) == pytest.approx(4300.0)
        assert p2.latest_month == MAR
        assert float(p3.total_sales) == pytest.approx(700.0)

    async def test_refresh_nothing(self, store):
        assert await store.refresh_establishments([]) == 0


class TestReadSide:
    """Tests for aggregate reads"""

    async def test_get_all_orders_by_total(self, seeded):
        locations = await seeded.get_all()

        assert [loc.permit_number for loc in locations] == ["P2", "P1"]
        assert locations[1].total_sales == pytest.approx(3000.0)
        assert locations[1].latest_month == MAR

    async def test_get_all_date_window(self, seeded):
        locations = await seeded.get_all(FEB, MAR)
        p1 = next(loc for loc in locations if loc.permit_number == "P1")

        assert p1.total_sales == pytest.approx(2000.0)
        assert p1.wine_sales == pytest.approx(200.0)
        assert [r.obligation_end_date for r in p1.monthly_records] == [MAR, FEB]

    async def test_get_all_window_excludes_permits_without_rows(self, seeded):
        locations = await seeded.get_all(MAR, MAR)

        assert [loc.permit_number for loc in locations] == ["P1"]
        assert len(locations[0].monthly_records) == 1

    async def test_totals_match_record_sums(self, seeded):
        for location in await seeded.get_all():
            assert location.total_sales == pytest.approx(
                sum(r.total_receipts for r in location.monthly_records)
            )

    async def test_metadata_uses_max(self, store):
        await store.insert_batch([
            make_sales_row("P1", JAN, 100, name="Alpha Lounge"),
            make_sales_row("P1", FEB, 100, name="Zed Lounge"),
        ])

        location = await store.get_by_permit("P1")

        assert location.location_name == "Zed Lounge"

    async def test_get_by_permit(self, seeded):
        location = await seeded.get_by_permit("P1")

        assert location.total_sales == pytest.approx(3000.0)
        assert len(location.monthly_records) == 3
        assert await seeded.get_by_permit("NOPE") is None

    async def test_get_permit_history_ascending(self, seeded):
        history = await seeded.get_permit_history("P1")

        assert [r.obligation_end_date for r in history] == [JAN, FEB, MAR]
        assert await seeded.get_permit_history("NOPE") == []


class TestSearchByName:
    """Tests for establishment name search"""

    async def test_search_cap_and_ordering(self, store):
        rows = []
        for i in range(60):
            permit = f"R{i:03d}"
            rows.append(make_sales_row(permit, JAN, 100 + i, name=f"The Rustic #{i}"))
            rows.append(make_sales_row(permit, FEB, 200 + i, name=f"The Rustic #{i}"))
        rows.append(make_sales_row("OTHER", JAN, 99999, name="Somewhere Else"))
        await store.insert_batch(rows)
        await store.refresh_establishments({r["permit_number"] for r in rows})

        results = await store.search_by_name("rustic")

        assert len(results) == 50
        totals = [loc.total_sales for loc in results]
        assert totals == sorted(totals, reverse=True)
        assert results[0].permit_number == "R059"
        for location in results:
            dates = [r.obligation_end_date for r in location.monthly_records]
            assert dates
            assert dates == sorted(dates, reverse=True)

    async def test_search_limit_cannot_exceed_cap(self, seeded):
        seeded.search_limit = 1
        assert len(await seeded.search_by_name("a", limit=10)) == 1

    async def test_search_escapes_wildcards(self, store):
        await store.insert_batch([
            make_sales_row("P1", JAN, 100, name="100% Agave"),
            make_sales_row("P2", JAN, 100, name="1000 Oaks"),
        ])
        await store.refresh_establishments(["P1", "P2"])

        results = await store.search_by_name("100%")

        assert [loc.permit_number for loc in results] == ["P1"]

    async def test_search_no_match(self, seeded):
        assert await seeded.search_by_name("zzz") == []
