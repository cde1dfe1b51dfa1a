from __future__ import annotations
import asyncio
import logging
from typing import AsyncGenerator, Awaitable, TypeVar
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .core.config import get_settings
from .core.errors import InvariantViolation, StorageError
from .models import Base

logger = logging.getLogger(__name__)
T = TypeVar("T")

settings = get_settings()


def configure_sqlite(engine: AsyncEngine) -> None:
    """Make SQLite writers queue on the busy timeout instead of deadlocking."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = create_async_engine(settings.database_url, echo=False, future=True)
configure_sqlite(engine)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

async def init_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


async def bounded(op: str, aw: Awaitable[T], timeout: float | None = None) -> T:
    """Run one store-facing operation under the configured timeout.

    Driver failures are classified into retryable and fatal ``StorageError``;
    a uniqueness conflict that escapes the operation is an ``InvariantViolation``.
    """
    limit = timeout if timeout is not None else settings.store_timeout_seconds
    try:
        return await asyncio.wait_for(aw, limit)
    except asyncio.TimeoutError as exc:
        logger.warning("%s timed out after %.1fs", op, limit)
        raise StorageError(f"{op} timed out", retryable=True) from exc
    except IntegrityError as exc:
        logger.error("%s hit an unexpected constraint conflict: %s", op, exc.orig)
        raise InvariantViolation(f"{op}: unexpected constraint conflict") from exc
    except (OperationalError, InterfaceError) as exc:
        logger.warning("%s failed with a transient store error: %s", op, exc.orig)
        raise StorageError(f"{op} failed: store unavailable", retryable=True) from exc
    except SQLAlchemyError as exc:
        logger.error("%s failed: %s", op, exc)
        raise StorageError(f"{op} failed", retryable=False) from exc
