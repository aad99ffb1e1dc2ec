"""
Location Endpoints

Aggregated permit locations for the map. List queries go through the query
cache; single-permit lookups and name search read the store directly.
"""

import math
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
import structlog

from txsales.database.store import SalesStore
from txsales.schemas import (
    LocationListResponse,
    LocationSearchResponse,
    LocationSummary,
    Pagination,
)
from txsales.serving.api.dependencies import get_cache, get_store
from txsales.serving.cache import QueryCache

logger = structlog.get_logger(__name__)
router = APIRouter()

DEFAULT_PAGE_SIZE = 1000


async def load_locations(
    store: SalesStore,
    cache: QueryCache,
    start_date: Optional[date],
    end_date: Optional[date],
) -> List[LocationSummary]:
    """Full location set for a date window, served from cache when fresh"""
    key = QueryCache.key_for(start_date, end_date)
    return await cache.get_or_load(key, lambda: store.get_all(start_date, end_date))


def filter_locations(
    locations: List[LocationSummary],
    county: Optional[str] = None,
    city: Optional[str] = None,
    zip_code: Optional[str] = None,
    min_revenue: Optional[float] = None,
) -> List[LocationSummary]:
    """Area and revenue filters; locations without positive sales are dropped"""
    if county:
        locations = [
            loc for loc in locations
            if (loc.location_county or "").lower() == county.lower()
        ]
    if city:
        locations = [loc for loc in locations if loc.location_city.lower() == city.lower()]
    if zip_code:
        locations = [loc for loc in locations if loc.location_zip == zip_code]

    locations = [loc for loc in locations if loc.total_sales > 0]

    if min_revenue is not None:
        locations = [loc for loc in locations if loc.total_sales >= min_revenue]
    return locations


@router.get("", response_model=LocationListResponse)
async def list_locations(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    county: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    zip_code: Optional[str] = Query(None, alias="zip"),
    min_revenue: Optional[float] = Query(None, alias="minRevenue"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=10000),
    store: SalesStore = Depends(get_store),
    cache: QueryCache = Depends(get_cache),
) -> LocationListResponse:
    """Paginated locations with totals over an optional inclusive date window"""
    locations = await load_locations(store, cache, start_date, end_date)
    locations = filter_locations(locations, county, city, zip_code, min_revenue)

    total = len(locations)
    offset = (page - 1) * limit
    end = offset + limit

    return LocationListResponse(
        locations=locations[offset:end],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
            has_more=end < total,
        ),
    )


@router.post("/refresh")
async def refresh_locations(cache: QueryCache = Depends(get_cache)) -> Dict[str, Any]:
    """Drop every cached location list"""
    dropped = cache.clear()
    logger.info("Manual cache refresh", entries=dropped)
    return {
        "success": True,
        "message": "Cache cleared successfully. Next request will fetch fresh data from database.",
    }


@router.get("/search/by-name", response_model=LocationSearchResponse)
async def search_locations(
    name: str = Query("", description="Case-insensitive substring of the location name"),
    store: SalesStore = Depends(get_store),
) -> LocationSearchResponse:
    if not name.strip():
        raise HTTPException(status_code=400, detail="Location name is required")

    locations = await store.search_by_name(name)
    return LocationSearchResponse(locations=locations, total=len(locations))


@router.get("/{permit_number}", response_model=LocationSummary)
async def get_location(
    permit_number: str,
    store: SalesStore = Depends(get_store),
) -> LocationSummary:
    location = await store.get_by_permit(permit_number)
    if location is None:
        raise HTTPException(status_code=404, detail="Location not found")
    return location
