"""
Bounded access to blocking database sessions.

SQLAlchemy sessions block, so every unit of work is run in a worker thread.
A semaphore sized to the pool capacity caps how many requests may hold a
session at once; callers that cannot get a permit within the timeout fail
with ``ServiceUnavailableError`` instead of queueing forever.
"""

import asyncio
from typing import Callable, TypeVar

import structlog
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.concurrency import run_in_threadpool

from dusty_shelf.errors import ServiceUnavailableError, StoreError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def create_db_engine(database_url: str, pool_size: int, pool_timeout: float) -> Engine:
    """
    Create the SQLAlchemy engine backing the connection pool.

    Args:
        database_url: SQLAlchemy database URL
        pool_size: Maximum number of pooled connections
        pool_timeout: Seconds to wait for a pooled connection

    Returns:
        Configured engine
    """
    url = make_url(database_url)

    kwargs = {}
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            # In-memory databases must share one connection
            return create_engine(url, poolclass=StaticPool, **kwargs)
    else:
        kwargs["pool_pre_ping"] = True

    return create_engine(
        url,
        pool_size=pool_size,
        max_overflow=0,
        pool_timeout=pool_timeout,
        **kwargs,
    )


class ConnectionPool:
    """Runs blocking session work off the event loop with bounded concurrency."""

    def __init__(self, engine: Engine, size: int, timeout: float):
        if size < 1:
            raise ValueError("pool size must be at least 1")

        self.engine = engine
        self.size = size
        self.timeout = timeout
        self.in_use = 0
        self._semaphore = asyncio.Semaphore(size)
        self._session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    @property
    def available(self) -> int:
        """Number of permits not currently held."""
        return self.size - self.in_use

    async def run(self, job: Callable[[Session], T]) -> T:
        """
        Run ``job`` with a fresh session inside one transaction.

        A cancelled caller stops waiting, but the job runs to completion and
        keeps its permit until then.

        Args:
            job: Callable receiving the session; its return value is passed back

        Returns:
            Whatever ``job`` returns

        Raises:
            ServiceUnavailableError: If no permit or connection is free in time
            StoreError: If the database raises
        """
        await self._acquire()
        # The permit follows the worker thread, not the awaiting request
        task = asyncio.ensure_future(run_in_threadpool(self._run_blocking, job))
        task.add_done_callback(self._job_done)
        return await asyncio.shield(task)

    async def _acquire(self) -> None:
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Connection pool exhausted", size=self.size, timeout=self.timeout)
            raise ServiceUnavailableError(
                f"No database connection became available within {self.timeout} seconds"
            )
        self.in_use += 1

    def _release(self) -> None:
        self.in_use -= 1
        self._semaphore.release()

    def _job_done(self, task: asyncio.Future) -> None:
        self._release()
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Job finished with an error", error=str(task.exception()))

    def _run_blocking(self, job: Callable[[Session], T]) -> T:
        try:
            with self._session_factory() as session:
                with session.begin():
                    return job(session)
        except PoolTimeoutError as e:
            logger.warning("Timed out waiting for a pooled connection", error=str(e))
            raise ServiceUnavailableError() from e
        except SQLAlchemyError as e:
            logger.error("Database operation failed", error=str(e))
            raise StoreError() from e

    def close(self) -> None:
        """Dispose every pooled connection."""
        self.engine.dispose()
