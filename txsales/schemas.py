"""
Read Models

Response shapes shared by the store, the cache and the API. Monetary values
arrive from the database as Decimal and are converted to float here, so any
comparison against summed values has to allow floating-point tolerance.
"""

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serializes with camelCase keys, accepts snake_case on construction"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MonthlySalesRead(CamelModel):
    """One reporting period of one permit"""
    permit_number: str
    location_name: str
    location_address: Optional[str] = None
    location_city: str
    location_county: Optional[str] = None
    location_zip: Optional[str] = None
    taxpayer_name: Optional[str] = None
    obligation_end_date: dt.date
    liquor_receipts: float
    wine_receipts: float
    beer_receipts: float
    cover_charge_receipts: float
    total_receipts: float
    lat: float
    lng: float


class LocationSummary(CamelModel):
    """Aggregated totals for one permit plus its monthly history"""
    permit_number: str
    location_name: str
    location_address: Optional[str] = None
    location_city: str
    location_county: Optional[str] = None
    location_zip: Optional[str] = None
    taxpayer_name: Optional[str] = None
    lat: float
    lng: float
    total_sales: float
    liquor_sales: float
    wine_sales: float
    beer_sales: float
    cover_charge_sales: float
    latest_month: dt.date
    monthly_records: List[MonthlySalesRead] = Field(default_factory=list)


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_more: bool


class LocationListResponse(CamelModel):
    locations: List[LocationSummary]
    pagination: Pagination


class LocationSearchResponse(CamelModel):
    locations: List[LocationSummary]
    total: int


class CountySummary(CamelModel):
    county_name: Optional[str] = None
    total_sales: float = 0.0
    liquor_sales: float = 0.0
    wine_sales: float = 0.0
    beer_sales: float = 0.0
    location_count: int = 0
    locations: List[LocationSummary] = Field(default_factory=list)


class AreasResponse(CamelModel):
    cities: List[str]
    zips: List[str]


class TimelinePoint(CamelModel):
    date: dt.date
    total: float
    liquor: float
    wine: float
    beer: float
    is_outlier: bool
    trend_break: bool


class PermitTimeseries(CamelModel):
    permit: str
    name: str
    city: str
    timeline: List[TimelinePoint]
