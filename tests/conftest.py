"""
Test Suite Configuration
"""
import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from txsales.config.settings import UpstreamSettings
from txsales.database.connection import create_session_factory
from txsales.database.models import Base
from txsales.database.store import SalesStore
from txsales.ingestion.geocoding import CityGeocoder
from txsales.ingestion.importer import IncrementalImporter
from txsales.ingestion.texas_client import TexasSalesClient
from txsales.serving.cache import QueryCache
from tests.factories import TODAY, UPSTREAM_URL, FakeClock, UpstreamStub


@pytest.fixture
async def engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory) -> SalesStore:
    return SalesStore(session_factory)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> QueryCache:
    return QueryCache(ttl_seconds=3600, clock=clock)


@pytest.fixture
def upstream() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture
def upstream_settings() -> UpstreamSettings:
    return UpstreamSettings(base_url=UPSTREAM_URL, page_size=2, max_retries=1)


@pytest.fixture
def client(upstream, upstream_settings) -> TexasSalesClient:
    return TexasSalesClient(
        settings=upstream_settings,
        geocoder=CityGeocoder(seed=42),
        transport=httpx.MockTransport(upstream.handler),
    )


@pytest.fixture
def importer(store, client, cache) -> IncrementalImporter:
    return IncrementalImporter(store, client, cache, batch_size=2, today=lambda: TODAY)
