import pytest
from fastapi.testclient import TestClient

from gta_watch.db import Base, create_db_engine, create_session_factory
from gta_watch.deps import get_geocoder, get_guidance, get_store
from gta_watch.main import app
from gta_watch.services.guidance import GuidanceService
from gta_watch.services.incident_store import IncidentStore

from helpers import FakeGeocoder


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return IncidentStore(create_session_factory(engine))


@pytest.fixture
def broken_store(engine):
    """A store whose table has gone away; every call fails."""
    Base.metadata.drop_all(bind=engine)
    return IncidentStore(create_session_factory(engine))


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def client(store, geocoder):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_geocoder] = lambda: geocoder
    app.dependency_overrides[get_guidance] = lambda: GuidanceService(None, "test-model")
    # No context manager: startup would build the real services
    yield TestClient(app)
    app.dependency_overrides.clear()
