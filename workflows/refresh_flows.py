"""
Prefect Workflow Orchestration - Sales Refresh

Flows for deployments that schedule imports outside the API process:
- Incremental import (hourly)
- Bulk import of calendar years
- Data quality check over recently stored rows

Set IMPORT_SCHEDULER_ENABLED=false on the API when these flows are deployed,
otherwise both will poll the upstream.
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, List, Optional

from prefect import flow, task, get_run_logger
from sqlalchemy import select

from txsales.config import get_settings
from txsales.database.connection import close_database, get_db, get_session_factory, init_database
from txsales.database.models import MonthlySale
from txsales.quality.validators import create_monthly_sales_validator, records_to_frame
from txsales.serving.api.dependencies import AppComponents, build_components


@asynccontextmanager
async def pipeline() -> AsyncIterator[AppComponents]:
    """Database connection and wired components for one flow run"""
    settings = get_settings()
    await init_database(create_tables=not settings.is_production)
    try:
        yield build_components(get_session_factory(), settings)
    finally:
        await close_database()


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="incremental_import",
    description="Import new periods from the Texas open data API",
    retries=2,
    retry_delay_seconds=300,
)
async def incremental_import_task() -> dict:
    logger = get_run_logger()
    async with pipeline() as components:
        result = await components.importer.run_incremental_import()
    logger.info(f"Incremental import {result.status.value}: {result.message}")
    return result.model_dump(mode="json")


@task(
    name="bulk_import_year",
    description="Import one calendar year",
    retries=1,
    retry_delay_seconds=600,
)
async def bulk_import_task(year: int) -> dict:
    logger = get_run_logger()
    async with pipeline() as components:
        result = await components.importer.run_bulk_import(year)
    logger.info(f"Bulk import {year} {result.status.value}: {result.message}")
    return result.model_dump(mode="json")


@task(
    name="validate_recent_rows",
    description="Run data quality validations over recent rows",
)
async def validate_recent_rows(days: int) -> dict:
    """Validate fact rows within `days` of the latest stored period"""
    logger = get_run_logger()

    async with get_db() as db:
        latest = (await db.execute(select(MonthlySale.obligation_end_date).order_by(
            MonthlySale.obligation_end_date.desc()
        ).limit(1))).scalar()
        if latest is None:
            logger.warning("No stored rows to validate")
            return {"passed": True, "rows": 0}

        result = await db.execute(
            select(MonthlySale).where(
                MonthlySale.obligation_end_date >= latest - timedelta(days=days)
            )
        )
        rows = [
            {
                "permit_number": r.permit_number,
                "obligation_end_date": r.obligation_end_date,
                "liquor_receipts": r.liquor_receipts,
                "wine_receipts": r.wine_receipts,
                "beer_receipts": r.beer_receipts,
                "cover_charge_receipts": r.cover_charge_receipts,
                "total_receipts": r.total_receipts,
            }
            for r in result.scalars()
        ]

    validation = create_monthly_sales_validator().validate(records_to_frame(rows))
    logger.info(
        f"Validation {validation.status.value}: "
        f"{validation.passed_checks}/{validation.total_checks} checks passed on {len(rows)} rows"
    )
    return {
        "passed": validation.status.value == "passed",
        "rows": len(rows),
        "total_checks": validation.total_checks,
        "passed_checks": validation.passed_checks,
        "failed_checks": validation.failed_checks,
        "success_rate": validation.success_rate,
        "failures": [c.message for c in validation.checks if not c.passed],
    }


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="hourly_incremental_import",
    description="Incremental import of Texas mixed beverage receipts",
)
async def hourly_incremental_import() -> dict:
    return await incremental_import_task()


@flow(
    name="bulk_import",
    description="Load full calendar years of receipts",
)
async def bulk_import(years: Optional[List[int]] = None) -> List[dict]:
    """
    Bulk import, one year at a time.

    Years already holding rows are skipped by the importer.
    """
    logger = get_run_logger()
    years = years or [2023, 2024, 2025]

    results = []
    for year in years:
        results.append(await bulk_import_task(year))

    imported = sum(r["imported"] for r in results)
    logger.info(f"Bulk import finished: {imported} records over {len(years)} years")
    return results


@flow(
    name="data_quality_check",
    description="Scheduled data quality check flow",
)
async def data_quality_check(days: int = 90) -> dict:
    settings = get_settings()
    await init_database(create_tables=not settings.is_production)
    try:
        return await validate_recent_rows(days)
    finally:
        await close_database()


# =============================================================================
# DEPLOYMENT CONFIGURATION
# =============================================================================

if __name__ == "__main__":
    import asyncio

    asyncio.run(hourly_incremental_import())
