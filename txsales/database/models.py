"""
Database Models - Sales Fact Table and Establishment Summary

Two persisted representations of the mixed beverage receipts data:

Fact Table:
- MonthlySale: one row per (permit number, obligation end date), append-only

Denormalized Aggregate:
- Establishment: one row per permit number, summed receipts and latest
  metadata, recomputed from MonthlySale by the importer

Money columns are NUMERIC so sums stay exact in the database; conversion to
float happens in the read models only.
"""

from datetime import datetime, date
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

MONEY = Numeric(14, 2)
COORDINATE = Numeric(9, 6)


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class MonthlySale(Base):
    """
    Monthly Sales Fact Table

    One reporting period of one permit. The pair (permit_number,
    obligation_end_date) is unique at the application level; the importer
    filters against existing keys before inserting.
    """
    __tablename__ = "monthly_sales"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    permit_number: Mapped[str] = mapped_column(String(50), nullable=False)

    # Location
    location_name: Mapped[str] = mapped_column(String(255), nullable=False)
    location_address: Mapped[Optional[str]] = mapped_column(String(255))
    location_city: Mapped[str] = mapped_column(String(100), nullable=False)
    location_county: Mapped[Optional[str]] = mapped_column(String(100))
    location_zip: Mapped[Optional[str]] = mapped_column(String(20))
    taxpayer_name: Mapped[Optional[str]] = mapped_column(String(255))

    # Reporting period
    obligation_end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Receipts
    liquor_receipts: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    wine_receipts: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    beer_receipts: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    cover_charge_receipts: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    total_receipts: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)

    # Approximate coordinates
    lat: Mapped[Decimal] = mapped_column(COORDINATE, nullable=False)
    lng: Mapped[Decimal] = mapped_column(COORDINATE, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_monthly_sales_permit_date", "permit_number", "obligation_end_date"),
        Index("ix_monthly_sales_date", "obligation_end_date"),
    )


class Establishment(Base):
    """
    Establishment Summary Table

    Whole-history aggregate per permit, kept in lockstep with MonthlySale so
    name search never has to GROUP BY the fact table.
    """
    __tablename__ = "establishments"

    permit_number: Mapped[str] = mapped_column(String(50), primary_key=True)

    location_name: Mapped[str] = mapped_column(String(255), nullable=False)
    location_address: Mapped[Optional[str]] = mapped_column(String(255))
    location_city: Mapped[str] = mapped_column(String(100), nullable=False)
    location_county: Mapped[Optional[str]] = mapped_column(String(100))
    location_zip: Mapped[Optional[str]] = mapped_column(String(20))
    taxpayer_name: Mapped[Optional[str]] = mapped_column(String(255))

    lat: Mapped[Decimal] = mapped_column(COORDINATE, nullable=False)
    lng: Mapped[Decimal] = mapped_column(COORDINATE, nullable=False)

    total_sales: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    liquor_sales: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    wine_sales: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    beer_sales: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    cover_charge_sales: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    latest_month: Mapped[date] = mapped_column(Date, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_establishments_location_name", "location_name"),
        Index("ix_establishments_total_sales", "total_sales"),
    )
