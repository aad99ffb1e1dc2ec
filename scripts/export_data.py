"""
Export both sales tables to CSV

Usage:
    python scripts/export_data.py
    python scripts/export_data.py --output-dir /tmp/exports
"""

import argparse
import asyncio
from pathlib import Path

from txsales.config.logging import configure_logging
from txsales.database.connection import close_database, get_session_factory, init_database
from txsales.database.export import export_table
from txsales.database.models import Establishment, MonthlySale

EXPORTS = [
    (MonthlySale, "monthly_sales_export.csv"),
    (Establishment, "establishments_export.csv"),
]


async def run(output_dir: Path) -> None:
    await init_database()
    try:
        for model, filename in EXPORTS:
            path = output_dir / filename
            print(f"📊 Exporting {model.__tablename__}...")
            rows = await export_table(get_session_factory(), model, path)
            size_mb = path.stat().st_size / 1024 / 1024
            print(f"   ✅ {path}: {rows:,} rows, {size_mb:.2f} MB")
    finally:
        await close_database()


def main():
    parser = argparse.ArgumentParser(description="Export sales tables to CSV")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path.cwd() / "exports",
        help="Directory for the CSV files (default: ./exports)",
    )
    args = parser.parse_args()

    configure_logging(log_format="console")
    asyncio.run(run(args.output_dir))


if __name__ == "__main__":
    main()
