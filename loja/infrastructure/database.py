import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DataError, DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from loja.domain.exceptions import ConcurrencyException, InvalidInputError, StoreUnavailableError
from loja.infrastructure.models import Base
from loja.logging_config import mask_database_url

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}


def is_write_conflict(exc: DBAPIError) -> bool:
    """Tell whether a driver error means "lost a race, try again"."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True
    # SQLite serializes writers with a database lock instead of row locks
    return isinstance(exc, OperationalError) and "database is locked" in str(orig).lower()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Connection pool manager for the transactional store.

    Created once at startup and passed explicitly to the catalog and cart
    use cases; closed at shutdown.
    """

    def __init__(self, database_url: str, echo: bool = False, pool_size: int = 20):
        self.url = make_url(database_url)
        engine_kwargs = {"echo": echo}
        if self.url.get_backend_name() != "sqlite":
            engine_kwargs.update(pool_size=pool_size, max_overflow=0, pool_pre_ping=True)

        self.engine = create_async_engine(database_url, **engine_kwargs)
        if self.url.get_backend_name() == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("Database configured: %s", mask_database_url(database_url))

    async def create_tables(self) -> None:
        """Create all tables in database"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_tables(self) -> None:
        """Drop all tables (for testing)"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Session for reads; nothing is committed."""
        async with self.session_factory() as session:
            try:
                yield session
            except (OperationalError, InterfaceError) as e:
                raise StoreUnavailableError(f"Banco de dados indisponível: {e.orig}") from e

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Session wrapped in a single transaction.

        Commits when the block exits normally and rolls back on any exception.
        Driver errors are translated:
        - write conflicts (serialization failure, deadlock, locked SQLite db)
          become ConcurrencyException, which callers may retry
        - values the column cannot hold (DataError) become InvalidInputError
        - other operational failures become StoreUnavailableError
        - IntegrityError passes through untouched, only the caller knows
          which unique key it hit
        """
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    yield session
            except IntegrityError:
                raise
            except DataError as e:
                raise InvalidInputError(f"Valor fora do intervalo permitido: {e.orig}") from e
            except DBAPIError as e:
                if is_write_conflict(e):
                    raise ConcurrencyException(
                        f"Conflito de concorrência: {e.orig}"
                    ) from e
                if isinstance(e, (OperationalError, InterfaceError)) or e.connection_invalidated:
                    raise StoreUnavailableError(f"Banco de dados indisponível: {e.orig}") from e
                raise

    async def close(self) -> None:
        """Close database connection"""
        await self.engine.dispose()
        logger.info("Database connection closed")
