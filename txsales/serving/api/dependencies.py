"""
API Dependencies

The app holds one AppComponents bundle on app.state; routes pull the pieces
they need through FastAPI dependencies. Tests build the bundle themselves
and pass it to create_api_app().
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from txsales.config.settings import Settings
from txsales.database.store import SalesStore
from txsales.ingestion.geocoding import CityGeocoder
from txsales.ingestion.importer import IncrementalImporter
from txsales.ingestion.scheduler import RefreshScheduler
from txsales.ingestion.texas_client import TexasSalesClient
from txsales.serving.cache import QueryCache


@dataclass
class AppComponents:
    store: SalesStore
    cache: QueryCache
    importer: IncrementalImporter
    scheduler: Optional[RefreshScheduler] = None


def build_components(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> AppComponents:
    """Wire store, cache, client, importer and scheduler from settings"""
    store = SalesStore(session_factory, search_limit=settings.importer.search_limit)
    cache = QueryCache(ttl_seconds=settings.cache.ttl_seconds)
    client = TexasSalesClient(settings=settings.upstream, geocoder=CityGeocoder())
    importer = IncrementalImporter(
        store,
        client,
        cache,
        batch_size=settings.importer.batch_size,
        timezone=settings.importer.timezone,
    )
    scheduler = RefreshScheduler(
        importer,
        timezone=settings.importer.timezone,
        run_on_startup=settings.importer.refresh_on_startup,
    )
    return AppComponents(store=store, cache=cache, importer=importer, scheduler=scheduler)


def get_components(request: Request) -> AppComponents:
    return request.app.state.components


def get_store(request: Request) -> SalesStore:
    return get_components(request).store


def get_cache(request: Request) -> QueryCache:
    return get_components(request).cache


def get_importer(request: Request) -> IncrementalImporter:
    return get_components(request).importer
