"""
Analytics Endpoints

Per-permit time series with outlier and trend-break flags.
"""

from fastapi import APIRouter, Depends, HTTPException

from txsales.database.store import SalesStore
from txsales.quality.anomaly_detector import build_permit_timeline
from txsales.schemas import PermitTimeseries
from txsales.serving.api.dependencies import get_store

router = APIRouter()


@router.get("/permit/{permit}/timeseries", response_model=PermitTimeseries)
async def permit_timeseries(
    permit: str,
    store: SalesStore = Depends(get_store),
) -> PermitTimeseries:
    records = await store.get_permit_history(permit)
    if not records:
        raise HTTPException(status_code=404, detail="No data found for permit")

    # Name and city come from the newest record
    latest = records[-1]
    return PermitTimeseries(
        permit=permit,
        name=latest.location_name,
        city=latest.location_city,
        timeline=build_permit_timeline(records),
    )
