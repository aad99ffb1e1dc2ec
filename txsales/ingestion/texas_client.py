"""
Texas Open Data Client

Pages through the Mixed Beverage Gross Receipts dataset on data.texas.gov
(Socrata) and turns raw rows into per-permit time series:

- Permissive schema validation (every field optional)
- Cleaning: permit, name, city and a positive total are required
- Grouping by permit number with approximate coordinates attached

A non-2xx response aborts the whole fetch. Returning a partial result would
make a failed run look like the upstream simply had fewer rows.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from txsales.config import get_settings
from txsales.config.settings import UpstreamSettings
from txsales.ingestion.geocoding import CityGeocoder

logger = structlog.get_logger(__name__)

DATE_FIELD = "obligation_end_date_yyyymmdd"
TRANSPORT_ERRORS = (httpx.TransportError,)

SalesKey = Tuple[str, date]


class UpstreamFetchError(Exception):
    """Raised when the upstream API cannot be read completely"""


class RawSalesRecord(BaseModel):
    """One row as returned by the Socrata API"""

    model_config = ConfigDict(extra="ignore")

    tabc_permit_number: Optional[str] = None
    taxpayer_name: Optional[str] = None
    taxpayer_address: Optional[str] = None
    taxpayer_city: Optional[str] = None
    taxpayer_county: Optional[str] = None
    taxpayer_zip: Optional[str] = None
    location_name: Optional[str] = None
    location_address: Optional[str] = None
    location_city: Optional[str] = None
    location_county: Optional[str] = None
    location_zip: Optional[str] = None
    obligation_end_date_yyyymmdd: Optional[str] = None
    liquor_receipts: Optional[str] = None
    wine_receipts: Optional[str] = None
    beer_receipts: Optional[str] = None
    cover_charge_receipts: Optional[str] = None
    total_receipts: Optional[str] = None


@dataclass
class SalesRecord:
    """A cleaned monthly record, ready to be persisted"""
    permit_number: str
    location_name: str
    location_address: Optional[str]
    location_city: str
    location_county: Optional[str]
    location_zip: Optional[str]
    taxpayer_name: Optional[str]
    obligation_end_date: date
    liquor_receipts: Decimal
    wine_receipts: Decimal
    beer_receipts: Decimal
    cover_charge_receipts: Decimal
    total_receipts: Decimal
    lat: float
    lng: float

    @property
    def key(self) -> SalesKey:
        return (self.permit_number, self.obligation_end_date)

    def to_row(self) -> Dict[str, Any]:
        """Column mapping for the monthly_sales table"""
        return {
            "permit_number": self.permit_number,
            "location_name": self.location_name,
            "location_address": self.location_address,
            "location_city": self.location_city,
            "location_county": self.location_county,
            "location_zip": self.location_zip,
            "taxpayer_name": self.taxpayer_name,
            "obligation_end_date": self.obligation_end_date,
            "liquor_receipts": self.liquor_receipts,
            "wine_receipts": self.wine_receipts,
            "beer_receipts": self.beer_receipts,
            "cover_charge_receipts": self.cover_charge_receipts,
            "total_receipts": self.total_receipts,
            "lat": Decimal(str(round(self.lat, 6))),
            "lng": Decimal(str(round(self.lng, 6))),
        }


@dataclass
class FetchedLocation:
    """All fetched records of one permit with running totals"""
    permit_number: str
    location_name: str
    location_address: Optional[str]
    location_city: str
    location_county: Optional[str]
    location_zip: Optional[str]
    taxpayer_name: Optional[str]
    lat: float
    lng: float
    total_sales: Decimal = Decimal("0")
    liquor_sales: Decimal = Decimal("0")
    wine_sales: Decimal = Decimal("0")
    beer_sales: Decimal = Decimal("0")
    cover_charge_sales: Decimal = Decimal("0")
    monthly_records: List[SalesRecord] = field(default_factory=list)


def parse_decimal(value: Optional[str]) -> Decimal:
    """Receipt text to Decimal; blanks and garbage count as zero"""
    if not value:
        return Decimal("0")
    try:
        parsed = Decimal(value.strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not parsed.is_finite():
        return Decimal("0")
    return parsed


def parse_obligation_date(value: Optional[str]) -> Optional[date]:
    """'2024-01-31T00:00:00.000' -> date(2024, 1, 31)"""
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _first(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value and value.strip():
            return value.strip()
    return None


def clean_record(raw: RawSalesRecord, geocoder: CityGeocoder) -> Optional[SalesRecord]:
    """
    Apply the cleaning rules to a validated raw row.

    Returns None for rows without a permit, a name, a city, a parseable
    period or a positive total.
    """
    permit = _first(raw.tabc_permit_number)
    name = _first(raw.location_name, raw.taxpayer_name)
    city = _first(raw.location_city, raw.taxpayer_city)
    period = parse_obligation_date(raw.obligation_end_date_yyyymmdd)
    total = parse_decimal(raw.total_receipts)

    if not permit or not name or not city or period is None:
        return None
    if total <= 0:
        return None

    lat, lng = geocoder.resolve(city)

    return SalesRecord(
        permit_number=permit,
        location_name=name,
        location_address=_first(raw.location_address, raw.taxpayer_address),
        location_city=city,
        location_county=_first(raw.location_county, raw.taxpayer_county),
        location_zip=_first(raw.location_zip, raw.taxpayer_zip),
        taxpayer_name=_first(raw.taxpayer_name),
        obligation_end_date=period,
        liquor_receipts=parse_decimal(raw.liquor_receipts),
        wine_receipts=parse_decimal(raw.wine_receipts),
        beer_receipts=parse_decimal(raw.beer_receipts),
        cover_charge_receipts=parse_decimal(raw.cover_charge_receipts),
        total_receipts=total,
        lat=lat,
        lng=lng,
    )


def group_by_permit(records: List[SalesRecord]) -> List[FetchedLocation]:
    """
    Group cleaned records into one FetchedLocation per permit.

    Metadata comes from the permit's most recent record. Locations are sorted
    by total sales, largest first; each location's records newest first.
    """
    grouped: Dict[str, List[SalesRecord]] = {}
    for record in records:
        grouped.setdefault(record.permit_number, []).append(record)

    locations = []
    for permit, permit_records in grouped.items():
        permit_records.sort(key=lambda r: r.obligation_end_date, reverse=True)
        latest = permit_records[0]
        location = FetchedLocation(
            permit_number=permit,
            location_name=latest.location_name,
            location_address=latest.location_address,
            location_city=latest.location_city,
            location_county=latest.location_county,
            location_zip=latest.location_zip,
            taxpayer_name=latest.taxpayer_name,
            lat=latest.lat,
            lng=latest.lng,
            monthly_records=permit_records,
        )
        for record in permit_records:
            location.total_sales += record.total_receipts
            location.liquor_sales += record.liquor_receipts
            location.wine_sales += record.wine_receipts
            location.beer_sales += record.beer_receipts
            location.cover_charge_sales += record.cover_charge_receipts
        locations.append(location)

    locations.sort(key=lambda loc: loc.total_sales, reverse=True)
    return locations


def build_where_clause(start_date: Optional[date], end_date: Optional[date]) -> Optional[str]:
    """SoQL filter on the obligation date, both bounds inclusive"""
    conditions = []
    if start_date is not None:
        conditions.append(f"{DATE_FIELD} >= '{start_date.isoformat()}T00:00:00.000'")
    if end_date is not None:
        conditions.append(f"{DATE_FIELD} <= '{end_date.isoformat()}T23:59:59.999'")
    if not conditions:
        return None
    return " AND ".join(conditions)


class TexasSalesClient:
    """
    Async client for the mixed beverage receipts dataset.

    Example:
        client = TexasSalesClient()
        locations = await client.fetch_all_sales(start_date=date(2024, 1, 1))
    """

    def __init__(
        self,
        settings: Optional[UpstreamSettings] = None,
        geocoder: Optional[CityGeocoder] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings().upstream
        self.geocoder = geocoder or CityGeocoder()
        self._transport = transport
        self._request_count = 0

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.settings.app_token:
            headers["X-App-Token"] = self.settings.app_token.get_secret_value()
        return headers

    async def _get_page(self, http: httpx.AsyncClient, params: Dict[str, Any]) -> List[Any]:
        """One page request; transport errors are retried, HTTP errors are not"""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.settings.max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=30),
            retry=retry_if_exception_type(TRANSPORT_ERRORS),
            reraise=True,
        ):
            with attempt:
                self._request_count += 1
                response = await http.get(self.settings.base_url, params=params)
                response.raise_for_status()
                payload = response.json()

        if not isinstance(payload, list):
            raise UpstreamFetchError(f"Unexpected payload type: {type(payload).__name__}")
        return payload

    async def fetch_raw_rows(
        self,
        max_records: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Any]:
        """
        Page through the dataset newest first.

        Raises:
            UpstreamFetchError: On any non-2xx status or transport failure
        """
        page_size = self.settings.page_size
        where = build_where_clause(start_date, end_date)
        rows: List[Any] = []
        offset = 0

        async with httpx.AsyncClient(
            timeout=self.settings.timeout_seconds,
            headers=self._headers(),
            transport=self._transport,
        ) as http:
            while True:
                limit = page_size
                if max_records is not None:
                    limit = min(page_size, max_records - len(rows))
                    if limit <= 0:
                        break

                params: Dict[str, Any] = {
                    "$limit": limit,
                    "$offset": offset,
                    "$order": f"{DATE_FIELD} DESC",
                }
                if where:
                    params["$where"] = where

                try:
                    page = await self._get_page(http, params)
                except httpx.HTTPStatusError as e:
                    raise UpstreamFetchError(
                        f"Texas API request failed: {e.response.status_code}"
                    ) from e
                except httpx.HTTPError as e:
                    raise UpstreamFetchError(f"Texas API request failed: {e}") from e

                rows.extend(page)
                offset += len(page)
                logger.debug("Fetched page", offset=offset, page_rows=len(page))

                if len(page) < limit:
                    break

        logger.info(
            "Fetched upstream rows",
            rows=len(rows),
            requests=self._request_count,
            start_date=str(start_date) if start_date else None,
            end_date=str(end_date) if end_date else None,
        )
        return rows

    def clean_rows(self, rows: List[Any]) -> List[SalesRecord]:
        """Validate and clean raw rows, dropping the ones that fail"""
        records = []
        invalid = 0
        for row in rows:
            try:
                raw = RawSalesRecord.model_validate(row)
            except ValidationError:
                invalid += 1
                continue
            record = clean_record(raw, self.geocoder)
            if record is not None:
                records.append(record)

        logger.debug(
            "Cleaned upstream rows",
            kept=len(records),
            invalid=invalid,
            dropped=len(rows) - len(records) - invalid,
        )
        return records

    async def fetch_all_sales(
        self,
        max_records: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[FetchedLocation]:
        """
        Fetch, clean and group sales records for a date window.

        Args:
            max_records: Cap on raw rows fetched, None for no cap
            start_date: Inclusive lower bound on the obligation date
            end_date: Inclusive upper bound on the obligation date

        Returns:
            One FetchedLocation per permit, largest total first
        """
        rows = await self.fetch_raw_rows(max_records, start_date, end_date)
        records = self.clean_rows(rows)
        return group_by_permit(records)
