"""
Database handle: async engine plus session factory.

There is no module-level engine. A Database is built once at process start
(FastAPI lifespan, demo script, test fixture), handed to the seat store, and
disposed on shutdown.

With LOG_SQL enabled every statement is logged with its parameters and
duration under the "query_executed" event.
"""

import re
import time
from typing import Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from seat_claims.core.config import Settings, get_settings
from seat_claims.core.logging import get_logger

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def format_sql(statement: str) -> str:
    """Collapse a statement onto one line for log output."""
    return _WHITESPACE.sub(" ", statement).strip()


class Database:
    def __init__(self, url: str, *, log_sql: bool = False, **engine_kwargs) -> None:
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self.sessionmaker = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )
        if log_sql:
            self._install_query_logging()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Database":
        settings = settings or get_settings()
        return cls(
            settings.DATABASE_URL,
            log_sql=settings.LOG_SQL,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
            pool_pre_ping=True,
        )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def session(self) -> AsyncSession:
        return self.sessionmaker()

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("database_disposed")

    def _install_query_logging(self) -> None:
        sync_engine = self.engine.sync_engine

        @event.listens_for(sync_engine, "before_cursor_execute")
        def _start_timer(conn, cursor, statement, parameters, context, executemany):
            conn.info.setdefault("query_start_time", []).append(time.perf_counter())

        @event.listens_for(sync_engine, "after_cursor_execute")
        def _log_query(conn, cursor, statement, parameters, context, executemany):
            started = conn.info["query_start_time"].pop()
            logger.debug(
                "query_executed",
                sql=format_sql(statement),
                params=parameters,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )

        @event.listens_for(sync_engine, "handle_error")
        def _log_error(exception_context):
            conn = exception_context.connection
            if conn is not None and conn.info.get("query_start_time"):
                conn.info["query_start_time"].pop()
            logger.debug(
                "query_failed",
                sql=format_sql(exception_context.statement or ""),
                error=str(exception_context.original_exception),
            )
