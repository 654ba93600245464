"""
OpenBooks Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.
Who:   Used by all test files in the tests/ directory.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── clock / id_factory: deterministic time and ids
    ├── file_backend: JsonFileStore in a temp directory
    ├── store: PhotoStore loaded (and seeded) over file_backend
    ├── uploader: LocalDiskUploader in a temp directory
    ├── sample_image_bytes: Fake image content for upload tests
    └── test_client: HTTPX AsyncClient for API endpoint testing
"""

import os
import tempfile

# Override settings for testing BEFORE any app imports
os.environ["DB_PROVIDER"] = "file"
os.environ["STORAGE_PROVIDER"] = "local"
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="openbooks_test_data_")
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="openbooks_test_uploads_")
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from openbooks.services.blob_service import LocalDiskUploader
from openbooks.services.photo_store import PhotoStore
from openbooks.storage.file_store import JsonFileStore

# 2023-11-14T22:13:20Z
START_MS = 1_700_000_000_000


class FakeClock:
    """Epoch-ms clock that advances 1ms per reading, so timestamps are distinct."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


class SequentialIds:
    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        return f"{self.prefix}{self.count}"


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def id_factory():
    return SequentialIds()


@pytest.fixture
def file_backend(tmp_path):
    """JsonFileStore writing <tmp>/data/db.json (the directory does not exist yet)."""
    return JsonFileStore(tmp_path / "data" / "db.json")


@pytest_asyncio.fixture
async def store(file_backend, clock, id_factory):
    """
    A PhotoStore that has completed its startup load.

    The backend starts empty, so the store holds the seed aggregate:
    6 users, 8 posts, 8 ratings, 4 comments, active user u_consumer.
    """
    photo_store = PhotoStore(file_backend, clock=clock, id_factory=id_factory)
    await photo_store.load()
    return photo_store


@pytest.fixture
def uploader(tmp_path):
    return LocalDiskUploader(tmp_path / "uploads", max_size=1024 * 1024)


@pytest.fixture
def sample_image_bytes():
    """
    Provides minimal valid JPEG bytes for upload tests.

    Minimal JPEG: SOI marker + JFIF header + EOI marker.
    """
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


@pytest_asyncio.fixture
async def test_client(store, uploader):
    """
    Provides an async HTTP test client for endpoint testing.

    What:    HTTPX AsyncClient bound to an app built around the loaded `store`.
    How:     Uses ASGITransport to route requests directly to the app.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from openbooks.main import create_app

    app = create_app(store=store, uploader=uploader)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
