"""
Data Quality Module
"""
from .validators import DataValidator, ValidationResult, create_monthly_sales_validator
from .anomaly_detector import build_permit_timeline

__all__ = [
    "DataValidator",
    "ValidationResult",
    "create_monthly_sales_validator",
    "build_permit_timeline",
]
