import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from app.config import settings
from app.database import StorageGateway
from app.main import create_app
from app.regions import RegionRegistry

REGIONS = ["us-west-1", "sa-east-1", "ap-southeast-2"]


def make_registry(names=None, hosts=None, **overrides) -> RegionRegistry:
    names = names or REGIONS
    if hosts is None:
        hosts = {name: f"{name}.db.internal:5432" for name in names}
    params = {"database": "distributed_app", "username": "dbadmin", "password": "s3cret"}
    params.update(overrides)
    return RegionRegistry(names, hosts, **params)


def sqlite_engine_factory(directory):
    """One SQLite file per region stands in for that region's Postgres."""
    def factory(config):
        return create_async_engine(
            f"sqlite+aiosqlite:///{directory / (config.name + '.db')}",
            poolclass=AsyncAdaptedQueuePool,
        )
    return factory


def unreachable_engine_factory(config):
    # The parent directory does not exist, so every connect attempt fails
    return create_async_engine(f"sqlite+aiosqlite:////nonexistent-dir/{config.name}/store.db")


class AsyncBytes:
    """Minimal async stream over an in-memory payload."""

    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    async def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._data) - self._pos
        chunk = self._data[self._pos:self._pos + size]
        self._pos += len(chunk)
        return chunk


@pytest.fixture
def registry():
    return make_registry()


@pytest.fixture
def gateway(registry, tmp_path):
    return StorageGateway(registry, engine_factory=sqlite_engine_factory(tmp_path))


@pytest_asyncio.fixture
async def store(gateway):
    """The gateway for async tests; pools are closed afterwards."""
    yield gateway
    await gateway.dispose()


@pytest.fixture
def staging_dir(tmp_path, monkeypatch):
    path = tmp_path / "staging"
    path.mkdir()
    monkeypatch.setattr(settings, "UPLOAD_TEMP_DIR", str(path))
    return path


@pytest.fixture
def client(gateway, staging_dir):
    with TestClient(create_app(gateway)) as test_client:
        yield test_client
