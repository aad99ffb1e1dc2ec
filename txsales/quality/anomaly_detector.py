"""
Permit Timeline Anomalies

Flags unusual months in one permit's sales history:

- Outliers: total receipts more than Z_THRESHOLD population standard
  deviations from the permit's mean
- Trend breaks: total below TREND_BREAK_RATIO of the trailing 4-month
  rolling mean (current month included)
"""

from typing import List

import numpy as np
import polars as pl
import structlog

from txsales.schemas import MonthlySalesRead, TimelinePoint

logger = structlog.get_logger(__name__)

Z_THRESHOLD = 3.0
ROLLING_WINDOW = 4
TREND_BREAK_RATIO = 0.8


def z_scores(values: np.ndarray) -> np.ndarray:
    """Population z-scores; a flat series has std 0, treated as 1"""
    std = float(np.std(values)) or 1.0
    return (values - np.mean(values)) / std


def build_permit_timeline(records: List[MonthlySalesRead]) -> List[TimelinePoint]:
    """
    Annotated monthly timeline for one permit.

    Args:
        records: Monthly records of a single permit, any order

    Returns:
        One TimelinePoint per record, oldest first
    """
    if not records:
        return []

    df = pl.DataFrame(
        {
            "date": [r.obligation_end_date for r in records],
            "total": [r.total_receipts for r in records],
            "liquor": [r.liquor_receipts for r in records],
            "wine": [r.wine_receipts for r in records],
            "beer": [r.beer_receipts for r in records],
        },
        schema={
            "date": pl.Date,
            "total": pl.Float64,
            "liquor": pl.Float64,
            "wine": pl.Float64,
            "beer": pl.Float64,
        },
    ).sort("date")

    z = z_scores(df["total"].to_numpy())
    df = df.with_columns(
        pl.Series("is_outlier", np.abs(z) > Z_THRESHOLD),
        pl.col("total").rolling_mean(window_size=ROLLING_WINDOW).alias("rolling_mean"),
    ).with_columns(
        (
            pl.col("rolling_mean").is_not_null()
            & (pl.col("total") < pl.col("rolling_mean") * TREND_BREAK_RATIO)
        ).alias("trend_break"),
    )

    timeline = [
        TimelinePoint(
            date=row["date"],
            total=row["total"],
            liquor=row["liquor"],
            wine=row["wine"],
            beer=row["beer"],
            is_outlier=row["is_outlier"],
            trend_break=row["trend_break"],
        )
        for row in df.iter_rows(named=True)
    ]

    logger.debug(
        "Built permit timeline",
        permit=records[0].permit_number,
        points=len(timeline),
        outliers=int(df["is_outlier"].sum()),
        trend_breaks=int(df["trend_break"].sum()),
    )
    return timeline
