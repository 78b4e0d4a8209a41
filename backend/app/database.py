"""Storage gateway: one async SQLAlchemy engine (connection pool) per region.

Usage in routes:
    from app.database import get_gateway

    @router.get("/items")
    async def list_items(gateway: StorageGateway = Depends(get_gateway)):
        rows = await gateway.execute("us-west-1", select(FileRecord.id))
        ...

Each pool is created on first use. The first connection to a region also
bootstraps the uploaded_files table there (create-if-absent, then add any
column the live table is missing).
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import Request
from sqlalchemy import inspect, select, text
from sqlalchemy.engine import RowMapping
from sqlalchemy.exc import DBAPIError, SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from app.config import Settings
from app.exceptions import QueryError, StoreConnectionError, safe_error_message
from app.models import Base, FileRecord
from app.regions import RegionConfig, RegionRegistry

logger = logging.getLogger(__name__)

RowSet = list[RowMapping]
EngineFactory = Callable[[RegionConfig], AsyncEngine]

# Raised by the driver or the pool while a connection is being established
_CONNECT_ERRORS = (OSError, asyncio.TimeoutError, PoolTimeoutError, DBAPIError)


class StorageGateway:
    """Owns the per-region pools and runs statements against them."""

    def __init__(
        self,
        registry: RegionRegistry,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        engine_factory: EngineFactory | None = None,
    ):
        self.registry = registry
        self._pool_size = pool_size
        self._max_overflow = max_overflow
        self._engine_factory = engine_factory or self._create_engine
        self._engines: dict[str, AsyncEngine] = {}
        self._schema_ready: set[str] = set()
        self._schema_locks = {region: asyncio.Lock() for region in registry.names}

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "StorageGateway":
        return cls(
            RegionRegistry.from_settings(settings),
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            **kwargs,
        )

    def _create_engine(self, config: RegionConfig) -> AsyncEngine:
        return create_async_engine(
            config.url,
            echo=False,
            pool_size=self._pool_size,
            max_overflow=self._max_overflow,
            pool_timeout=config.connect_timeout,
            pool_pre_ping=True,
            connect_args=config.connect_args(),
        )

    def get_engine(self, region: str) -> AsyncEngine:
        """Return the region's engine, creating its pool on first use.

        Raises RegionNotFoundError / ConfigurationError from the registry.
        """
        engine = self._engines.get(region)
        if engine is None:
            config = self.registry.get(region)
            engine = self._engine_factory(config)
            self._engines[region] = engine
            logger.info("Created connection pool for %s (%s)", region, config.endpoint)
        return engine

    @asynccontextmanager
    async def _connect(self, region: str) -> AsyncIterator[AsyncConnection]:
        """Check out a pooled connection; always returned to the pool on exit."""
        engine = self.get_engine(region)
        try:
            conn = await engine.connect()
        except _CONNECT_ERRORS as e:
            raise StoreConnectionError(
                f"Could not connect to {region}: {safe_error_message(e, 'connection failed')}"
            ) from e

        try:
            yield conn
        except DBAPIError as e:
            if e.connection_invalidated:
                raise StoreConnectionError(
                    f"Connection to {region} lost: {safe_error_message(e)}"
                ) from e
            raise QueryError(f"Query failed in {region}: {safe_error_message(e)}") from e
        except (OSError, asyncio.TimeoutError) as e:
            raise StoreConnectionError(
                f"Connection to {region} lost: {safe_error_message(e, 'timed out')}"
            ) from e
        except SQLAlchemyError as e:
            raise QueryError(f"Query failed in {region}: {safe_error_message(e)}") from e
        finally:
            await conn.close()

    async def ensure_schema(self, region: str) -> None:
        """Create uploaded_files in the region if needed. Runs once per process per region."""
        if region in self._schema_ready:
            return
        lock = self._schema_locks.get(region) or asyncio.Lock()
        async with lock:
            if region in self._schema_ready:
                return
            async with self._connect(region) as conn:
                await conn.run_sync(Base.metadata.create_all)
                added = await _add_missing_columns(conn, FileRecord.__table__)
                await conn.commit()
            if added:
                logger.info("Added column(s) %s to %s in %s",
                            ", ".join(added), FileRecord.__tablename__, region)
            self._schema_ready.add(region)

    @asynccontextmanager
    async def connection(self, region: str) -> AsyncIterator[AsyncConnection]:
        """Scoped connection to a region's store, schema guaranteed to exist.

        Uncommitted work is rolled back when the connection is released.
        """
        await self.ensure_schema(region)
        async with self._connect(region) as conn:
            yield conn

    async def execute(self, region: str, statement, params: dict | None = None) -> RowSet:
        """Run one statement, commit, and return its rows (empty when none)."""
        async with self.connection(region) as conn:
            result = await conn.execute(statement, params)
            rows = list(result.mappings().all()) if result.returns_rows else []
            await conn.commit()
        return rows

    async def ping(self, region: str) -> None:
        """Trivial liveness query. Does not touch the schema."""
        async with self._connect(region) as conn:
            await conn.execute(select(1))

    async def run_sync(self, region: str, fn: Callable):
        """Run fn(sync_connection) without schema bootstrap, e.g. for introspection."""
        async with self._connect(region) as conn:
            return await conn.run_sync(fn)

    async def dispose(self) -> None:
        """Close every pool. Safe to call more than once."""
        engines, self._engines = self._engines, {}
        self._schema_ready.clear()
        for region, engine in engines.items():
            await engine.dispose()
            logger.info("Closed connection pool for %s", region)


async def _add_missing_columns(conn: AsyncConnection, table) -> list[str]:
    """ALTER TABLE ... ADD COLUMN for model columns missing from the live table.

    Added columns are always nullable so existing rows stay valid.
    """
    existing = await conn.run_sync(
        lambda sync_conn: {c["name"] for c in inspect(sync_conn).get_columns(table.name)}
    )
    dialect = conn.dialect
    if_not_exists = "IF NOT EXISTS " if dialect.name == "postgresql" else ""
    added = []
    for column in table.columns:
        if column.name in existing:
            continue
        ddl = f"ALTER TABLE {table.name} ADD COLUMN {if_not_exists}{column.name} {column.type.compile(dialect=dialect)}"
        if column.server_default is not None:
            default = column.server_default.arg.compile(dialect=dialect)
            ddl += f" DEFAULT {default}"
        await conn.execute(text(ddl))
        added.append(column.name)
    return added


def get_gateway(request: Request) -> StorageGateway:
    """FastAPI dependency returning the process-wide gateway."""
    return request.app.state.gateway
