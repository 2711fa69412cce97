"""
Tests for the connection pool and the book store.
"""

import asyncio
import threading
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.pool import QueuePool, StaticPool

from dusty_shelf.database import BookStore
from dusty_shelf.errors import NotFoundError, ServiceUnavailableError, StoreError
from dusty_shelf.models import Book
from dusty_shelf.pool import ConnectionPool, create_db_engine


@pytest.fixture
def pool():
    engine = create_db_engine("sqlite://", pool_size=1, pool_timeout=0.2)
    pool = ConnectionPool(engine, size=1, timeout=0.2)
    yield pool
    pool.close()


@pytest.fixture
def store(pool):
    store = BookStore(pool)
    store.create_schema()
    return store


@pytest.fixture
def book(sample_book):
    return Book(**sample_book)


class TestConnectionPool:
    """Test cases for ConnectionPool."""

    def test_rejects_empty_pool(self):
        with pytest.raises(ValueError):
            ConnectionPool(create_db_engine("sqlite://", 1, 1.0), size=0, timeout=1.0)

    @pytest.mark.asyncio
    async def test_runs_job_off_the_event_loop(self, pool):
        loop_thread = threading.get_ident()

        job_thread = await pool.run(lambda session: threading.get_ident())

        assert job_thread != loop_thread
        assert pool.available == 1

    @pytest.mark.asyncio
    async def test_exhausted_pool_times_out(self, pool):
        started = threading.Event()
        release = threading.Event()

        def slow_job(session):
            started.set()
            release.wait(5)
            return "done"

        holder = asyncio.create_task(pool.run(slow_job))
        await asyncio.to_thread(started.wait, 5)
        assert pool.available == 0

        with pytest.raises(ServiceUnavailableError):
            await pool.run(lambda session: "never")

        release.set()
        assert await holder == "done"
        assert pool.available == 1

    @pytest.mark.asyncio
    async def test_pool_timeout_maps_to_unavailable(self, pool):
        def job(session):
            raise PoolTimeoutError("QueuePool limit reached")

        with pytest.raises(ServiceUnavailableError):
            await pool.run(job)

    @pytest.mark.asyncio
    async def test_database_errors_become_store_errors(self, pool):
        def job(session):
            raise OperationalError("SELECT 1", {}, Exception("connection lost"))

        with pytest.raises(StoreError):
            await pool.run(job)
        assert pool.available == 1

    @pytest.mark.asyncio
    async def test_domain_errors_propagate(self, pool):
        def job(session):
            raise NotFoundError()

        with pytest.raises(NotFoundError):
            await pool.run(job)
        assert pool.available == 1

    @pytest.mark.asyncio
    async def test_cancelled_caller_keeps_permit_until_job_ends(self, pool):
        """Test that a cancelled request cannot free a permit its thread still uses."""
        started = threading.Event()
        release = threading.Event()
        finished = threading.Event()

        def slow_job(session):
            started.set()
            release.wait(5)
            finished.set()
            return "done"

        caller = asyncio.create_task(pool.run(slow_job))
        await asyncio.to_thread(started.wait, 5)

        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        assert pool.available == 0

        with pytest.raises(ServiceUnavailableError):
            await pool.run(lambda session: "never")

        release.set()
        await asyncio.to_thread(finished.wait, 5)
        for _ in range(50):
            if pool.available == 1:
                break
            await asyncio.sleep(0.02)

        assert pool.available == 1
        assert await pool.run(lambda session: "next") == "next"


class TestCreateDbEngine:
    """Test cases for create_db_engine."""

    def test_file_sqlite_uses_pool_bounds(self, tmp_path):
        engine = create_db_engine(f"sqlite:///{tmp_path / 'shelf.db'}", pool_size=3, pool_timeout=0.5)
        try:
            assert isinstance(engine.pool, QueuePool)
            assert engine.pool.size() == 3
            assert engine.pool.timeout() == 0.5
        finally:
            engine.dispose()

    def test_memory_sqlite_shares_one_connection(self):
        engine = create_db_engine("sqlite://", pool_size=3, pool_timeout=0.5)
        try:
            assert isinstance(engine.pool, StaticPool)
        finally:
            engine.dispose()


class TestBookStore:
    """Test cases for BookStore."""

    @pytest.mark.asyncio
    async def test_insert_and_get(self, store, book):
        inserted = await store.insert(book)

        assert inserted == book
        assert await store.get_by_id(book.id) == book

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        with pytest.raises(NotFoundError):
            await store.get_by_id(999999)

    @pytest.mark.asyncio
    async def test_list_all(self, store, book):
        assert await store.list_all() == []

        await store.insert(book)
        await store.insert(book.model_copy(update={"id": 11}))

        assert [b.id for b in await store.list_all()] == [10, 11]

    @pytest.mark.asyncio
    async def test_duplicate_insert(self, store, book):
        await store.insert(book)

        with pytest.raises(StoreError):
            await store.insert(book)

    @pytest.mark.asyncio
    async def test_update_only_touches_text_fields(self, store, book):
        await store.insert(book)

        affected = await store.update(book.id, "new title", "new author", "new description")

        assert affected == 1
        stored = await store.get_by_id(book.id)
        assert (stored.title, stored.author, stored.description) == ("new title", "new author", "new description")
        assert stored.published == book.published
        assert stored.encoded == book.encoded

    @pytest.mark.asyncio
    async def test_update_missing(self, store):
        assert await store.update(1, "t", "a", "d") == 0

    @pytest.mark.asyncio
    async def test_delete(self, store, book):
        await store.insert(book)

        assert await store.delete(book.id) == 1
        assert await store.delete(book.id) == 0

    @pytest.mark.asyncio
    async def test_ping(self, store):
        assert await store.ping() is True

    @pytest.mark.asyncio
    async def test_ping_reports_failure(self, store, pool, monkeypatch):
        monkeypatch.setattr(pool, "run", AsyncMock(side_effect=StoreError()))

        assert await store.ping() is False
