"""
Test data builders and fakes shared across test modules
"""
import re
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

UPSTREAM_URL = "https://data.texas.gov/resource/naix-2893.json"
TODAY = date(2024, 3, 15)


def make_raw_row(
    permit: str,
    period: str,
    total: float,
    liquor: Optional[float] = None,
    wine: float = 0.0,
    beer: float = 0.0,
    cover: float = 0.0,
    name: str = "Rustic Tap",
    city: str = "AUSTIN",
    county: str = "TRAVIS",
    zip_code: str = "78701",
) -> Dict[str, Any]:
    """One row shaped like the Socrata JSON payload"""
    if liquor is None:
        liquor = total - wine - beer - cover
    return {
        "tabc_permit_number": permit,
        "taxpayer_name": f"{name} LLC",
        "location_name": name,
        "location_address": "100 Congress Ave",
        "location_city": city,
        "location_county": county,
        "location_zip": zip_code,
        "obligation_end_date_yyyymmdd": f"{period}T00:00:00.000",
        "liquor_receipts": str(liquor),
        "wine_receipts": str(wine),
        "beer_receipts": str(beer),
        "cover_charge_receipts": str(cover),
        "total_receipts": str(total),
    }


class UpstreamStub:
    """
    In-memory Socrata endpoint for httpx.MockTransport.

    Honors $where date bounds, $order (always date DESC), $offset and $limit.
    """

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None):
        self.rows: List[Dict[str, Any]] = list(rows or [])
        self.requests: List[httpx.Request] = []
        self.status_code = 200

    def _matches(self, row: Dict[str, Any], where: str) -> bool:
        period = row["obligation_end_date_yyyymmdd"][:10]
        lower = re.search(r">= '(\d{4}-\d{2}-\d{2})", where)
        upper = re.search(r"<= '(\d{4}-\d{2}-\d{2})", where)
        if lower and period < lower.group(1):
            return False
        if upper and period > upper.group(1):
            return False
        return True

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "unavailable"})

        params = request.url.params
        rows = self.rows
        if "$where" in params:
            rows = [r for r in rows if self._matches(r, params["$where"])]
        rows = sorted(rows, key=lambda r: r["obligation_end_date_yyyymmdd"], reverse=True)

        offset = int(params.get("$offset", 0))
        limit = int(params.get("$limit", 1000))
        return httpx.Response(200, json=rows[offset:offset + limit])


class FakeClock:
    """Monotonic clock that only moves when told to"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_sales_row(
    permit: str,
    period: date,
    total: float,
    liquor: Optional[float] = None,
    wine: float = 0.0,
    beer: float = 0.0,
    name: str = "Rustic Tap",
    city: str = "AUSTIN",
    county: str = "TRAVIS",
    zip_code: str = "78701",
) -> Dict[str, Any]:
    """One monthly_sales row as passed to SalesStore.insert_batch"""
    if liquor is None:
        liquor = total - wine - beer
    return {
        "permit_number": permit,
        "location_name": name,
        "location_address": "100 Congress Ave",
        "location_city": city,
        "location_county": county,
        "location_zip": zip_code,
        "taxpayer_name": f"{name} LLC",
        "obligation_end_date": period,
        "liquor_receipts": Decimal(str(liquor)),
        "wine_receipts": Decimal(str(wine)),
        "beer_receipts": Decimal(str(beer)),
        "cover_charge_receipts": Decimal("0"),
        "total_receipts": Decimal(str(total)),
        "lat": Decimal("30.267200"),
        "lng": Decimal("-97.743100"),
    }
