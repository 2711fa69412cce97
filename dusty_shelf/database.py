"""
Book storage on a relational database.
"""

from typing import List

import structlog
from sqlalchemy import Boolean, Column, Integer, LargeBinary, Text, delete, select, text, update
from sqlalchemy.orm import declarative_base

from dusty_shelf.errors import DustyShelfError, NotFoundError
from dusty_shelf.models import Book
from dusty_shelf.pool import ConnectionPool

logger = structlog.get_logger(__name__)

Base = declarative_base()


class BookRow(Base):
    """Row of the ``books`` table."""
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=False)
    title = Column(Text, nullable=False)
    author = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    published = Column(Boolean, nullable=False, default=False)
    encoded = Column(LargeBinary, nullable=False, default=b"")


class BookStore:
    """CRUD operations on the ``books`` table."""

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    def create_schema(self) -> None:
        """Create the ``books`` table if it does not exist yet."""
        Base.metadata.create_all(self.pool.engine)
        logger.info("Database schema ready", tables=sorted(Base.metadata.tables))

    async def get_by_id(self, book_id: int) -> Book:
        """
        Get a single book by ID.

        Args:
            book_id: Book identifier

        Returns:
            The stored book

        Raises:
            NotFoundError: If no book has this id
        """
        def job(session):
            row = session.get(BookRow, book_id)
            if row is None:
                raise NotFoundError()
            return Book.from_row(row)

        return await self.pool.run(job)

    async def list_all(self) -> List[Book]:
        """Get every book in natural row order."""
        def job(session):
            rows = session.scalars(select(BookRow)).all()
            return [Book.from_row(row) for row in rows]

        return await self.pool.run(job)

    async def insert(self, book: Book) -> Book:
        """
        Insert a book with its client-supplied id.

        Args:
            book: Book to store

        Returns:
            The row as stored
        """
        def job(session):
            row = BookRow(
                id=book.id,
                title=book.title,
                author=book.author,
                description=book.description,
                published=book.published,
                encoded=book.encoded_bytes(),
            )
            session.add(row)
            session.flush()
            return Book.from_row(row)

        inserted = await self.pool.run(job)
        logger.info("Book added", book_id=inserted.id)
        return inserted

    async def update(self, book_id: int, title: str, author: str, description: str) -> int:
        """
        Replace title, author and description of a book.

        ``published`` and ``encoded`` are left untouched.

        Returns:
            Number of affected rows
        """
        def job(session):
            result = session.execute(
                update(BookRow)
                .where(BookRow.id == book_id)
                .values(title=title, author=author, description=description)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

        affected = await self.pool.run(job)
        logger.info("Book update executed", book_id=book_id, affected_rows=affected)
        return affected

    async def delete(self, book_id: int) -> int:
        """
        Delete a book by ID.

        Returns:
            Number of affected rows
        """
        def job(session):
            result = session.execute(
                delete(BookRow)
                .where(BookRow.id == book_id)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

        affected = await self.pool.run(job)
        logger.info("Book delete executed", book_id=book_id, affected_rows=affected)
        return affected

    async def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            await self.pool.run(lambda session: session.execute(text("SELECT 1")).scalar())
            return True
        except DustyShelfError as e:
            logger.error("Database health check failed", error=str(e))
            return False
