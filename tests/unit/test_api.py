"""
Unit Tests - Serving API
"""
from datetime import date

import httpx
import pytest

from txsales.ingestion.scheduler import RefreshScheduler
from txsales.serving.api import create_api_app
from txsales.serving.api.dependencies import AppComponents
from tests.factories import make_raw_row, make_sales_row

DEC, JAN, FEB = date(2023, 12, 31), date(2024, 1, 31), date(2024, 2, 29)


@pytest.fixture
async def seeded_store(store):
    await store.insert_batch([
        make_sales_row("P1", DEC, 1000, wine=100),
        make_sales_row("P1", JAN, 1500),
        make_sales_row("P2", JAN, 4000, name="Big Bar", city="DALLAS", county="DALLAS", zip_code="75201"),
        make_sales_row("P3", FEB, 250, name="Rustic Corner", city="HOUSTON", county="HARRIS", zip_code="77002"),
    ])
    await store.refresh_establishments(["P1", "P2", "P3"])
    return store


@pytest.fixture
async def api(seeded_store, cache, importer):
    components = AppComponents(
        store=seeded_store,
        cache=cache,
        importer=importer,
        scheduler=RefreshScheduler(importer, run_on_startup=False),
    )
    app = create_api_app(components)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


class TestLocations:
    """Tests for /api/locations"""

    async def test_list_uses_camel_case_and_pagination(self, api):
        response = await api.get("/api/locations", params={"page": 1, "limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert [loc["permitNumber"] for loc in body["locations"]] == ["P2", "P1"]
        assert body["locations"][1]["totalSales"] == pytest.approx(2500.0)
        assert body["locations"][1]["latestMonth"] == "2024-01-31"
        assert body["pagination"] == {
            "page": 1,
            "limit": 2,
            "total": 3,
            "totalPages": 2,
            "hasMore": True,
        }

    async def test_second_page(self, api):
        body = (await api.get("/api/locations", params={"page": 2, "limit": 2})).json()

        assert [loc["permitNumber"] for loc in body["locations"]] == ["P3"]
        assert body["pagination"]["hasMore"] is False

    async def test_date_window(self, api):
        body = (await api.get(
            "/api/locations", params={"startDate": "2024-01-01", "endDate": "2024-01-31"}
        )).json()

        totals = {loc["permitNumber"]: loc["totalSales"] for loc in body["locations"]}
        assert totals == {"P2": pytest.approx(4000.0), "P1": pytest.approx(1500.0)}

    async def test_area_filters(self, api):
        by_county = (await api.get("/api/locations", params={"county": "harris"})).json()
        by_zip = (await api.get("/api/locations", params={"zip": "75201"})).json()
        by_revenue = (await api.get("/api/locations", params={"minRevenue": 2000})).json()

        assert [loc["permitNumber"] for loc in by_county["locations"]] == ["P3"]
        assert [loc["permitNumber"] for loc in by_zip["locations"]] == ["P2"]
        assert [loc["permitNumber"] for loc in by_revenue["locations"]] == ["P2", "P1"]

    async def test_list_is_cached_until_refresh(self, api, seeded_store, cache):
        await api.get("/api/locations")
        await seeded_store.insert_batch([make_sales_row("P9", FEB, 9999, name="Late Arrival")])

        cached = (await api.get("/api/locations")).json()
        assert "P9" not in [loc["permitNumber"] for loc in cached["locations"]]

        refresh = await api.post("/api/locations/refresh")
        assert refresh.json()["success"] is True

        fresh = (await api.get("/api/locations")).json()
        assert fresh["locations"][0]["permitNumber"] == "P9"

    async def test_get_by_permit(self, api):
        response = await api.get("/api/locations/P1")

        assert response.status_code == 200
        body = response.json()
        assert body["totalSales"] == pytest.approx(2500.0)
        assert [r["obligationEndDate"] for r in body["monthlyRecords"]] == ["2024-01-31", "2023-12-31"]

    async def test_unknown_permit_404(self, api):
        assert (await api.get("/api/locations/NOPE")).status_code == 404

    async def test_search_by_name(self, api):
        body = (await api.get("/api/locations/search/by-name", params={"name": "rustic"})).json()

        assert body["total"] == 2
        assert [loc["permitNumber"] for loc in body["locations"]] == ["P1", "P3"]
        assert body["locations"][0]["monthlyRecords"]

    async def test_search_requires_name(self, api):
        assert (await api.get("/api/locations/search/by-name")).status_code == 400


class TestAreas:
    """Tests for /api/areas and /api/counties"""

    async def test_areas(self, api):
        body = (await api.get("/api/areas")).json()

        assert body["cities"] == ["AUSTIN", "DALLAS", "HOUSTON"]
        assert body["zips"] == ["75201", "77002", "78701"]

    async def test_counties(self, api):
        body = (await api.get("/api/counties")).json()
        counties = {c["countyName"]: c for c in body}

        assert set(counties) == {"TRAVIS", "DALLAS", "HARRIS"}
        assert counties["TRAVIS"]["totalSales"] == pytest.approx(2500.0)
        assert counties["TRAVIS"]["wineSales"] == pytest.approx(100.0)
        assert counties["TRAVIS"]["locationCount"] == 1


class TestAnalytics:
    """Tests for /api/analytics"""

    async def test_permit_timeseries(self, api):
        body = (await api.get("/api/analytics/permit/P1/timeseries")).json()

        assert body["permit"] == "P1"
        assert body["name"] == "Rustic Tap"
        assert [p["date"] for p in body["timeline"]] == ["2023-12-31", "2024-01-31"]
        assert body["timeline"][0]["isOutlier"] is False
        assert body["timeline"][0]["trendBreak"] is False

    async def test_unknown_permit_404(self, api):
        assert (await api.get("/api/analytics/permit/NOPE/timeseries")).status_code == 404


class TestAdminImport:
    """Tests for /api/admin/import"""

    async def test_import_reports_counts(self, api, upstream):
        upstream.rows = [make_raw_row("P3", "2024-02-29", 250), make_raw_row("P4", "2024-02-29", 800)]

        response = await api.post("/api/admin/import")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "imported": 1,
            "message": "Imported 1 new records",
            "latestDate": "2024-02-29",
            "previousLatestDate": "2024-02-29",
        }

    async def test_import_failure_is_500(self, api, upstream):
        upstream.status_code = 502

        response = await api.post("/api/admin/import")

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert "502" in body["message"]

    async def test_import_status(self, api, upstream):
        await api.post("/api/admin/import")

        body = (await api.get("/api/admin/import/status")).json()

        assert body["running"] is False
        assert body["last_status"] == "up_to_date"


class TestHealth:
    """Tests for health endpoints"""

    async def test_health(self, api):
        body = (await api.get("/api/health")).json()

        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"
        assert "entries" in body["checks"]["cache"]

    async def test_live_and_ready(self, api):
        assert (await api.get("/api/health/live")).json() == {"status": "alive"}
        assert (await api.get("/api/health/ready")).json() == {"status": "ready"}

    async def test_csp_header(self, api):
        response = await api.get("/api/health/live")
        assert "default-src *" in response.headers["Content-Security-Policy"]
