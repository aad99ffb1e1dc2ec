"""
Unit Tests - Texas Open Data Client
"""
from datetime import date
from decimal import Decimal

import httpx
import pytest
from pydantic import SecretStr

from txsales.config.settings import UpstreamSettings
from txsales.ingestion.geocoding import CityGeocoder, TEXAS_CENTROID
from txsales.ingestion.texas_client import (
    RawSalesRecord,
    TexasSalesClient,
    UpstreamFetchError,
    build_where_clause,
    clean_record,
    group_by_permit,
    parse_decimal,
    parse_obligation_date,
)
from tests.factories import UPSTREAM_URL, make_raw_row


class TestParsing:
    """Tests for field parsers"""

    def test_parse_decimal(self):
        assert parse_decimal("1234.56") == Decimal("1234.56")
        assert parse_decimal(" 10 ") == Decimal("10")
        assert parse_decimal("") == Decimal("0")
        assert parse_decimal(None) == Decimal("0")
        assert parse_decimal("n/a") == Decimal("0")
        assert parse_decimal("NaN") == Decimal("0")

    def test_parse_obligation_date(self):
        assert parse_obligation_date("2024-01-31T00:00:00.000") == date(2024, 1, 31)
        assert parse_obligation_date("2024-02-29") == date(2024, 2, 29)
        assert parse_obligation_date("01/31/2024") is None
        assert parse_obligation_date(None) is None

    def test_where_clause_is_inclusive_on_both_bounds(self):
        where = build_where_clause(date(2024, 1, 1), date(2024, 3, 31))

        assert "obligation_end_date_yyyymmdd >= '2024-01-01T00:00:00.000'" in where
        assert "obligation_end_date_yyyymmdd <= '2024-03-31T23:59:59.999'" in where
        assert " AND " in where

    def test_where_clause_open_bounds(self):
        assert build_where_clause(None, None) is None
        assert "<=" not in build_where_clause(date(2024, 1, 1), None)


class TestCleanRecord:
    """Tests for the cleaning rules"""

    @pytest.fixture
    def geocoder(self):
        return CityGeocoder(seed=1)

    def test_valid_row(self, geocoder):
        raw = RawSalesRecord.model_validate(make_raw_row("P1", "2024-01-31", 1000, wine=200))
        record = clean_record(raw, geocoder)

        assert record is not None
        assert record.key == ("P1", date(2024, 1, 31))
        assert record.total_receipts == Decimal("1000")
        assert record.wine_receipts == Decimal("200")
        assert record.liquor_receipts == Decimal("800")

    def test_missing_permit_is_dropped(self, geocoder):
        row = make_raw_row("P1", "2024-01-31", 1000)
        row["tabc_permit_number"] = "  "
        assert clean_record(RawSalesRecord.model_validate(row), geocoder) is None

    def test_non_positive_total_is_dropped(self, geocoder):
        for total in (0, -50):
            raw = RawSalesRecord.model_validate(make_raw_row("P1", "2024-01-31", total, liquor=0))
            assert clean_record(raw, geocoder) is None

    def test_unparseable_date_is_dropped(self, geocoder):
        row = make_raw_row("P1", "2024-01-31", 1000)
        row["obligation_end_date_yyyymmdd"] = "sometime"
        assert clean_record(RawSalesRecord.model_validate(row), geocoder) is None

    def test_name_and_city_fall_back_to_taxpayer(self, geocoder):
        row = make_raw_row("P1", "2024-01-31", 1000)
        row["location_name"] = None
        row["location_city"] = ""
        row["taxpayer_city"] = "Dallas"

        record = clean_record(RawSalesRecord.model_validate(row), geocoder)

        assert record.location_name == "Rustic Tap LLC"
        assert record.location_city == "Dallas"

    def test_missing_name_everywhere_is_dropped(self, geocoder):
        row = make_raw_row("P1", "2024-01-31", 1000)
        row["location_name"] = None
        row["taxpayer_name"] = None
        assert clean_record(RawSalesRecord.model_validate(row), geocoder) is None

    def test_unknown_city_gets_state_centroid(self, geocoder):
        raw = RawSalesRecord.model_validate(make_raw_row("P1", "2024-01-31", 1000, city="MARFA"))
        record = clean_record(raw, geocoder)
        assert (record.lat, record.lng) == TEXAS_CENTROID


class TestGroupByPermit:
    """Tests for per-permit grouping"""

    def test_groups_sums_and_sorts(self):
        geocoder = CityGeocoder(seed=3)
        rows = [
            make_raw_row("SMALL", "2024-01-31", 100),
            make_raw_row("BIG", "2024-01-31", 1000),
            make_raw_row("BIG", "2024-02-29", 1500, name="Rustic Tap Renamed"),
        ]
        records = [clean_record(RawSalesRecord.model_validate(r), geocoder) for r in rows]

        locations = group_by_permit(records)

        assert [loc.permit_number for loc in locations] == ["BIG", "SMALL"]
        big = locations[0]
        assert big.total_sales == Decimal("2500")
        assert big.location_name == "Rustic Tap Renamed"
        assert [r.obligation_end_date for r in big.monthly_records] == [
            date(2024, 2, 29),
            date(2024, 1, 31),
        ]


class TestTexasSalesClient:
    """Tests for paging and error handling against a mock transport"""

    async def test_pages_until_short_page(self, client, upstream):
        upstream.rows = [
            make_raw_row(f"P{i}", "2024-01-31", 100 + i) for i in range(5)
        ]

        rows = await client.fetch_raw_rows()

        assert len(rows) == 5
        # page_size=2: pages of 2, 2 and 1
        assert len(upstream.requests) == 3
        offsets = [int(r.url.params["$offset"]) for r in upstream.requests]
        assert offsets == [0, 2, 4]
        assert upstream.requests[0].url.params["$order"] == "obligation_end_date_yyyymmdd DESC"

    async def test_exact_multiple_needs_one_empty_page(self, client, upstream):
        upstream.rows = [make_raw_row(f"P{i}", "2024-01-31", 100) for i in range(4)]

        rows = await client.fetch_raw_rows()

        assert len(rows) == 4
        assert len(upstream.requests) == 3

    async def test_max_records_caps_fetch(self, client, upstream):
        upstream.rows = [make_raw_row(f"P{i}", "2024-01-31", 100) for i in range(10)]

        rows = await client.fetch_raw_rows(max_records=3)

        assert len(rows) == 3
        assert [int(r.url.params["$limit"]) for r in upstream.requests] == [2, 1]

    async def test_date_window_is_sent_as_where(self, client, upstream):
        upstream.rows = [
            make_raw_row("P1", "2023-12-31", 100),
            make_raw_row("P1", "2024-01-31", 200),
            make_raw_row("P1", "2024-02-29", 300),
        ]

        locations = await client.fetch_all_sales(
            start_date=date(2024, 1, 31), end_date=date(2024, 2, 29)
        )

        assert "$where" in upstream.requests[0].url.params
        assert len(locations) == 1
        assert locations[0].total_sales == Decimal("500")

    async def test_http_error_aborts_fetch(self, client, upstream):
        upstream.rows = [make_raw_row("P1", "2024-01-31", 100)]
        upstream.status_code = 503

        with pytest.raises(UpstreamFetchError, match="503"):
            await client.fetch_all_sales()

    async def test_invalid_rows_are_skipped(self, client, upstream):
        bad = make_raw_row("P2", "2024-01-31", 100)
        bad["location_name"] = {"nested": "object"}
        upstream.rows = [make_raw_row("P1", "2024-01-31", 100), bad]

        locations = await client.fetch_all_sales()

        assert [loc.permit_number for loc in locations] == ["P1"]

    async def test_app_token_header(self, upstream):
        settings = UpstreamSettings(base_url=UPSTREAM_URL, app_token=SecretStr("abc123"))
        client = TexasSalesClient(
            settings=settings,
            geocoder=CityGeocoder(seed=1),
            transport=httpx.MockTransport(upstream.handler),
        )

        await client.fetch_raw_rows()

        assert upstream.requests[0].headers["X-App-Token"] == "abc123"
