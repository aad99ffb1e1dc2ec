"""
Texas mixed beverage sales ingestion and aggregation
"""

__version__ = "1.0.0"
