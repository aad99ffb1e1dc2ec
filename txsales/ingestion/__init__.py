"""
Data Ingestion Module
"""
from .geocoding import CityGeocoder
from .importer import ImportResult, ImportStatus, IncrementalImporter
from .scheduler import RefreshScheduler
from .texas_client import TexasSalesClient, UpstreamFetchError

__all__ = [
    "CityGeocoder",
    "ImportResult",
    "ImportStatus",
    "IncrementalImporter",
    "RefreshScheduler",
    "TexasSalesClient",
    "UpstreamFetchError",
]
