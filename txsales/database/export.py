"""
Table export to CSV via Polars.
"""

from decimal import Decimal
from pathlib import Path
from typing import Type, Union

import polars as pl
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from txsales.database.models import Base

logger = structlog.get_logger(__name__)


def _plain(value):
    return float(value) if isinstance(value, Decimal) else value


async def table_to_frame(
    session_factory: async_sessionmaker[AsyncSession],
    model: Type[Base],
) -> pl.DataFrame:
    """Every row of a mapped table as a DataFrame, columns in table order"""
    columns = [c.name for c in model.__table__.columns]
    async with session_factory() as session:
        result = await session.execute(select(model.__table__))
        rows = [{c: _plain(row._mapping[c]) for c in columns} for row in result]

    if not rows:
        return pl.DataFrame(schema={c: pl.Utf8 for c in columns})
    return pl.DataFrame(rows, infer_schema_length=None).select(columns)


async def export_table(
    session_factory: async_sessionmaker[AsyncSession],
    model: Type[Base],
    path: Union[str, Path],
) -> int:
    """
    Write a table to CSV.

    Returns:
        Number of rows written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    df = await table_to_frame(session_factory, model)
    df.write_csv(path)
    logger.info("Exported table", table=model.__tablename__, rows=df.height, path=str(path))
    return df.height
