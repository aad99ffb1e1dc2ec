"""
Data Validation Module

Rule-based quality checks over monthly sales records, run on every fetched
batch before insertion. Failures are reported and logged; they never block an
import, because the cleaning step already drops unusable rows.

Checks:
- Not-null on required columns
- Uniqueness of the (permit, period) key
- Receipt ranges
- Custom cross-column rules
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

import polars as pl
import structlog

logger = structlog.get_logger(__name__)

RECEIPT_COLUMNS = [
    "liquor_receipts",
    "wine_receipts",
    "beer_receipts",
    "cover_charge_receipts",
    "total_receipts",
]


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"
    WARNING = "warning"


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100


def _missing_columns(df: pl.DataFrame, columns: Sequence[str]) -> List[str]:
    return [c for c in columns if c not in df.columns]


class DataValidator:
    """
    Chainable validator over a Polars DataFrame.

    Example:
        validator = DataValidator()
        validator.add_not_null_check("permit_number")
        validator.add_unique_check(["permit_number", "obligation_end_date"])
        result = validator.validate(df)
    """

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode
        self._checks: List[Callable[[pl.DataFrame], ValidationCheck]] = []

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null values in column"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return ValidationCheck(
                    name=f"not_null_{column}",
                    passed=False,
                    severity=severity,
                    message=f"Column '{column}' not found",
                )

            null_count = df[column].null_count()
            return ValidationCheck(
                name=f"not_null_{column}",
                passed=null_count == 0,
                severity=severity,
                message=f"Column '{column}' has {null_count} null values",
                details={"null_count": null_count},
                failed_rows=null_count,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_unique_check(
        self,
        columns: Sequence[str],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check that the combination of columns is unique"""
        columns = [columns] if isinstance(columns, str) else list(columns)
        name = "unique_" + "_".join(columns)

        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = _missing_columns(df, columns)
            if missing:
                return ValidationCheck(
                    name=name,
                    passed=False,
                    severity=severity,
                    message=f"Columns not found: {missing}",
                )

            total = len(df)
            duplicate_count = total - df.select(columns).unique().height
            return ValidationCheck(
                name=name,
                passed=duplicate_count == 0,
                severity=severity,
                message=f"{duplicate_count} duplicate keys on {columns}",
                details={"duplicate_count": duplicate_count},
                failed_rows=duplicate_count,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values within specified range"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return ValidationCheck(
                    name=f"range_{column}",
                    passed=False,
                    severity=severity,
                    message=f"Column '{column}' not found",
                )

            conditions = []
            if min_value is not None:
                conditions.append(pl.col(column) < min_value)
            if max_value is not None:
                conditions.append(pl.col(column) > max_value)
            if not conditions:
                return ValidationCheck(
                    name=f"range_{column}",
                    passed=True,
                    severity=severity,
                    message="No range specified",
                )

            combined = conditions[0]
            for cond in conditions[1:]:
                combined = combined | cond

            out_of_range = df.filter(combined).height
            return ValidationCheck(
                name=f"range_{column}",
                passed=out_of_range == 0,
                severity=severity,
                message=f"Column '{column}' has {out_of_range} values outside [{min_value}, {max_value}]",
                details={"min": min_value, "max": max_value, "out_of_range_count": out_of_range},
                failed_rows=out_of_range,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_custom_check(
        self,
        name: str,
        check_func: Callable[[pl.DataFrame], bool],
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add custom validation check"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            try:
                passed = bool(check_func(df))
            except Exception as e:
                return ValidationCheck(
                    name=name,
                    passed=False,
                    severity=severity,
                    message=f"Check failed with error: {e}",
                )
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message="Check passed" if passed else message_on_fail,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on DataFrame.

        Args:
            df: DataFrame to validate

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.now(timezone.utc)
        results = []

        for check_func in self._checks:
            result = check_func(df)
            results.append(result)
            if not result.passed:
                logger.warning(
                    "Validation check failed",
                    check=result.name,
                    message=result.message,
                    severity=result.severity.value,
                )

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
        warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

        if failed_checks > 0 or (warning_count > 0 and self.strict_mode):
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        logger.info(
            "Validation complete",
            status=status.value,
            rows=len(df),
            passed=passed_checks,
            failed=failed_checks,
            warnings=warning_count,
        )

        return ValidationResult(
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )


def records_to_frame(rows: List[Dict[str, Any]]) -> pl.DataFrame:
    """
    Monthly sales rows (as inserted) to a DataFrame.

    Receipts are cast to float; the frame is only used for checks.
    """
    if not rows:
        return pl.DataFrame(
            schema={"permit_number": pl.Utf8, "obligation_end_date": pl.Date}
            | {c: pl.Float64 for c in RECEIPT_COLUMNS}
        )

    return pl.DataFrame(
        [
            {
                "permit_number": row.get("permit_number"),
                "obligation_end_date": row.get("obligation_end_date"),
                **{
                    c: float(row[c]) if row.get(c) is not None else None
                    for c in RECEIPT_COLUMNS
                },
            }
            for row in rows
        ],
        schema={"permit_number": pl.Utf8, "obligation_end_date": pl.Date}
        | {c: pl.Float64 for c in RECEIPT_COLUMNS},
    )


def _categories_within_total(df: pl.DataFrame, tolerance: float = 0.01) -> bool:
    categories = (
        pl.col("liquor_receipts")
        + pl.col("wine_receipts")
        + pl.col("beer_receipts")
        + pl.col("cover_charge_receipts")
    )
    return df.filter(categories > pl.col("total_receipts") + tolerance).height == 0


def create_monthly_sales_validator() -> DataValidator:
    """Create pre-configured validator for monthly sales rows"""
    validator = (
        DataValidator()
        .add_not_null_check("permit_number")
        .add_not_null_check("obligation_end_date")
        .add_unique_check(["permit_number", "obligation_end_date"])
        .add_range_check("total_receipts", min_value=0.0001)
    )
    for column in RECEIPT_COLUMNS[:-1]:
        validator.add_range_check(column, min_value=0, severity=ValidationSeverity.WARNING)

    return validator.add_custom_check(
        name="categories_within_total",
        check_func=_categories_within_total,
        message_on_fail="Category receipts add up to more than total receipts",
        severity=ValidationSeverity.WARNING,
    )
