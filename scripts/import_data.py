"""
Bulk / Incremental Import

Usage:
    python scripts/import_data.py                 # years 2023-2025
    python scripts/import_data.py --years 2024 2025
    python scripts/import_data.py --incremental
"""

import argparse
import asyncio
from datetime import date
from typing import List, Tuple

import structlog

from txsales.config import get_settings
from txsales.config.logging import configure_logging
from txsales.database.connection import close_database, get_session_factory, init_database
from txsales.ingestion.importer import IncrementalImporter
from txsales.serving.api.dependencies import build_components

logger = structlog.get_logger(__name__)


async def import_years(importer: IncrementalImporter, years: List[int]) -> Tuple[int, List[int]]:
    """
    Bulk-load each year; a failing year is reported and the next one still runs.

    Returns:
        (records imported, years that failed)
    """
    total = 0
    failed = []
    for year in years:
        print(f"📊 Importing {year}...")
        try:
            result = await importer.run_bulk_import(year)
        except Exception as e:
            logger.error("Bulk import failed", year=year, error=str(e), exc_info=True)
            print(f"   ❌ {year} failed: {e}")
            failed.append(year)
            continue
        print(f"   {result.status.value}: {result.message}")
        total += result.imported
    return total, failed


async def run(years: List[int], incremental: bool) -> int:
    settings = get_settings()
    await init_database(create_tables=True)
    components = build_components(get_session_factory(), settings)

    try:
        if incremental:
            result = await components.importer.run_incremental_import()
            print(f"   {result.status.value}: {result.message}")
            return result.imported

        total, failed = await import_years(components.importer, years)
    finally:
        await close_database()

    print(f"✅ Imported {total:,} records")
    if failed:
        print(f"⚠️  Failed years: {', '.join(str(y) for y in failed)}")
    return total


def main():
    parser = argparse.ArgumentParser(description="Import Texas mixed beverage receipts")
    parser.add_argument(
        "--years",
        type=int,
        nargs="+",
        default=[2023, 2024, 2025],
        help="Calendar years to load (skipped when already present)",
    )
    parser.add_argument(
        "--incremental",
        action="store_true",
        help="Import only periods newer than the latest stored one",
    )
    args = parser.parse_args()

    current_year = date.today().year
    years = [y for y in args.years if y <= current_year]

    configure_logging(log_format="console")
    asyncio.run(run(years, args.incremental))


if __name__ == "__main__":
    main()
