"""
Area Endpoints

City, zip and county rollups over the cached location set.
"""

from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from txsales.database.store import SalesStore
from txsales.schemas import AreasResponse, CountySummary
from txsales.serving.api.dependencies import get_cache, get_store
from txsales.serving.api.routes.locations import load_locations
from txsales.serving.cache import QueryCache

router = APIRouter()


@router.get("/areas", response_model=AreasResponse)
async def list_areas(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    store: SalesStore = Depends(get_store),
    cache: QueryCache = Depends(get_cache),
) -> AreasResponse:
    """Sorted unique cities and zip codes"""
    locations = await load_locations(store, cache, start_date, end_date)
    cities = {loc.location_city for loc in locations if loc.location_city}
    zips = {loc.location_zip for loc in locations if loc.location_zip}
    return AreasResponse(cities=sorted(cities), zips=sorted(zips))


@router.get("/counties", response_model=List[CountySummary])
async def list_counties(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    store: SalesStore = Depends(get_store),
    cache: QueryCache = Depends(get_cache),
) -> List[CountySummary]:
    """Per-county totals in order of first appearance (largest location first)"""
    locations = await load_locations(store, cache, start_date, end_date)

    counties: Dict[Optional[str], CountySummary] = {}
    for location in locations:
        county = counties.setdefault(
            location.location_county,
            CountySummary(county_name=location.location_county),
        )
        county.total_sales += location.total_sales
        county.liquor_sales += location.liquor_sales
        county.wine_sales += location.wine_sales
        county.beer_sales += location.beer_sales
        county.location_count += 1
        county.locations.append(location)

    return list(counties.values())
