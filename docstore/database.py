"""Database engine, session factory and schema setup."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from docstore.models.base import Base

if TYPE_CHECKING:
    from docstore.config import Settings


def create_engine(
    settings: Settings,
) -> tuple[
    AsyncEngine,
    async_sessionmaker[AsyncSession],
]:
    """Create async engine and session factory.

    Returns (engine, session_factory) tuple.
    """
    engine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
    )
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return engine, session_factory


def ensure_database_dir(database_url: str) -> Path | None:
    """Create the parent directory of a file-backed SQLite database.

    Returns the database file path, or None for non-file URLs.
    """
    if not database_url.startswith("sqlite") or "///" not in database_url:
        return None
    db_path = database_url.split("///", 1)[-1]
    if not db_path or db_path.startswith(":memory:"):
        return None
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


async def init_schema(engine: AsyncEngine) -> None:
    """Create the document store tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
