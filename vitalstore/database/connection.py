import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from vitalstore.core.config import settings
from vitalstore.core.logger import get_logger
from vitalstore.database.base import Base
from vitalstore.exceptions.errors import StoreUnavailableError
from vitalstore.utils.day_buckets import bucket_timezone

logger = get_logger("database")


def _is_memory_url(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/").endswith(":"))


def _configure_sqlite(engine: AsyncEngine, in_memory: bool) -> None:
    """
    Take transaction control away from the sqlite3 driver so that every session
    opens with an explicit BEGIN, enable WAL so readers never see a half-written
    batch, and enforce foreign keys for the sleep detail cascade.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class HealthStore:
    """
    Handle on the local health database.

    Open it once, hand it to the services, close it on shutdown:

        async with HealthStore("sqlite+aiosqlite:///./vitalstore.db") as store:
            await MetricRecordService(store).insert_batch(...)

    Writes are serialized through an in-process lock and each one runs in a
    single transaction that rolls back on any exception, task cancellation
    included. Reads take no lock.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        echo: Optional[bool] = None,
        day_bucket_timezone: Optional[str] = None,
        default_user_id: Optional[int] = None,
    ):
        self.database_url = database_url or settings.DATABASE_URL
        self.echo = settings.DB_ECHO if echo is None else echo
        self.tz = bucket_timezone(day_bucket_timezone)
        self.default_user_id = settings.DEFAULT_USER_ID if default_user_id is None else default_user_id

        self.engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker] = None
        self._write_lock = asyncio.Lock()
        # A single shared in-memory connection cannot hold two transactions at once
        self._serialize_reads = _is_memory_url(self.database_url)

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def resolve_user(self, user_id: Optional[int]) -> int:
        return self.default_user_id if user_id is None else user_id

    async def open(self) -> "HealthStore":
        if self.engine is not None:
            return self

        # Register every table on Base.metadata before create_all
        import vitalstore.models  # noqa: F401

        engine_kwargs = {"echo": self.echo, "future": True}
        if self._serialize_reads:
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        engine = create_async_engine(self.database_url, **engine_kwargs)
        if self.database_url.startswith("sqlite"):
            _configure_sqlite(engine, self._serialize_reads)

        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            await engine.dispose()
            logger.error(f"Failed to open store at {self.database_url}: {e}")
            raise StoreUnavailableError(f"Could not open store: {e}") from e

        self.engine = engine
        self._sessionmaker = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info(f"Opened health store at {self.database_url}")
        return self

    async def close(self) -> None:
        if self.engine is None:
            return
        await self.engine.dispose()
        self.engine = None
        self._sessionmaker = None
        logger.info("Closed health store")

    async def __aenter__(self) -> "HealthStore":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _require_open(self) -> async_sessionmaker:
        if self._sessionmaker is None:
            raise StoreUnavailableError("Health store is not open")
        return self._sessionmaker

    @asynccontextmanager
    async def write(self) -> AsyncIterator[AsyncSession]:
        """One serialized transaction; committed on clean exit, rolled back otherwise."""
        sessionmaker = self._require_open()
        async with self._write_lock:
            async with sessionmaker() as session:
                try:
                    async with session.begin():
                        yield session
                except SQLAlchemyError as e:
                    logger.error(f"Write transaction failed: {repr(e)}")
                    raise StoreUnavailableError(f"Write failed: {e}") from e

    @asynccontextmanager
    async def read(self) -> AsyncIterator[AsyncSession]:
        sessionmaker = self._require_open()
        if self._serialize_reads:
            async with self._write_lock:
                async with self._read_session(sessionmaker) as session:
                    yield session
        else:
            async with self._read_session(sessionmaker) as session:
                yield session

    @asynccontextmanager
    async def _read_session(self, sessionmaker: async_sessionmaker) -> AsyncIterator[AsyncSession]:
        async with sessionmaker() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                logger.error(f"Read failed: {repr(e)}")
                raise StoreUnavailableError(f"Read failed: {e}") from e


def get_store(request: Request) -> HealthStore:
    """FastAPI dependency for the store opened in the app lifespan."""
    return request.app.state.store
