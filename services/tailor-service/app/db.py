import logging
from contextlib import asynccontextmanager

from shared.database import Base, get_engine, get_session

from .config import (
    DATABASE_URL,
    DB_STATEMENT_TIMEOUT_SECONDS,
    DB_POOL_SIZE,
    DB_POOL_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

__all__ = ["Base", "Database", "database"]


class Database:
    """
    Owned handle on the tailor store: opened once at service start,
    hands out one session per request, disposed at shutdown.
    """

    def __init__(
        self,
        url: str | None = None,
        statement_timeout_seconds: float = DB_STATEMENT_TIMEOUT_SECONDS,
    ):
        self.url = url if url is not None else DATABASE_URL
        self.statement_timeout_seconds = statement_timeout_seconds
        self._engine = None
        self._sessionmaker = None

    @property
    def is_open(self) -> bool:
        return self._sessionmaker is not None

    def open(self):
        if self.is_open:
            return
        if not self.url:
            raise RuntimeError("TAILOR_DB environment variable is not set")

        self._engine = get_engine(
            self.url,
            statement_timeout_seconds=self.statement_timeout_seconds,
            pool_size=DB_POOL_SIZE,
            pool_timeout_seconds=DB_POOL_TIMEOUT_SECONDS,
        )
        self._sessionmaker = get_session(self._engine)
        logger.info("database handle opened (statement timeout %ss)", self.statement_timeout_seconds)

    async def close(self):
        engine = self._engine
        self._engine = None
        self._sessionmaker = None
        if engine is not None:
            await engine.dispose()
            logger.info("database handle closed")

    @asynccontextmanager
    async def session(self):
        if not self.is_open:
            raise RuntimeError("Database is not open")
        async with self._sessionmaker() as session:
            yield session


database = Database()
