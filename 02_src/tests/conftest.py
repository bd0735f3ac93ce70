"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from tol_core.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def broadcaster():
    """Fresh broadcaster per test."""
    from tol_core.broadcaster import EventBroadcaster

    return EventBroadcaster()


@pytest_asyncio.fixture
async def recorder(broadcaster, storage):
    """Started ActivityRecorder wired to the test broadcaster and storage."""
    from tol_core.recorder import ActivityRecorder

    rec = ActivityRecorder(broadcaster=broadcaster, storage=storage)
    await rec.start()
    yield rec
    await rec.stop()


@pytest.fixture
def client():
    """TestClient over a full application with an in-memory database."""
    from tol_core.api import create_fastapi_app
    from tol_core.app import Application

    application = Application(db_path=":memory:")
    app = create_fastapi_app(application)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def application(client):
    """The Application behind ``client``."""
    return client.app.state.application
