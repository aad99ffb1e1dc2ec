"""
Admin Endpoints

Manual trigger for an immediate incremental import.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import structlog

from txsales.config.logging import import_run_context
from txsales.ingestion.importer import ImportStatus, IncrementalImporter
from txsales.serving.api.dependencies import get_importer

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/import")
async def trigger_import(importer: IncrementalImporter = Depends(get_importer)) -> Any:
    """
    Run the incremental import now.

    Waits behind a scheduled run if one is in progress.
    """
    try:
        with import_run_context("manual"):
            result = await importer.run_incremental_import()
    except Exception as e:
        logger.error("Manual import failed", error=str(e), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": str(e) or type(e).__name__},
        )

    body: Dict[str, Any] = {
        "success": result.status != ImportStatus.NO_BASELINE,
        "imported": result.imported,
        "message": result.message,
        "latestDate": result.latest_date.isoformat() if result.latest_date else None,
        "previousLatestDate": (
            result.previous_latest_date.isoformat() if result.previous_latest_date else None
        ),
    }
    return body


@router.get("/import/status")
async def import_status(importer: IncrementalImporter = Depends(get_importer)) -> Dict[str, Any]:
    return importer.status()
