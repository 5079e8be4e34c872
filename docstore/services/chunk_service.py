"""Chunk record store: persistence of chunk rows keyed by (store, file)."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select

from docstore.models.chunk import DocumentStoreFileChunk

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from docstore.schemas.document_store import ChunkContent

logger = logging.getLogger(__name__)


async def add_chunks(
    session: AsyncSession,
    store_id: str,
    doc_id: str,
    chunks: Sequence[ChunkContent],
) -> list[DocumentStoreFileChunk]:
    """Insert one row per chunk, numbered in sequence order. Does not commit."""
    rows = [
        DocumentStoreFileChunk(
            id=str(uuid.uuid4()),
            doc_id=doc_id,
            store_id=store_id,
            chunk_no=index,
            page_content=chunk.page_content,
            chunk_metadata=chunk.metadata,
        )
        for index, chunk in enumerate(chunks)
    ]
    session.add_all(rows)
    await session.flush()
    return rows


async def delete_file_chunks(session: AsyncSession, doc_id: str) -> int:
    """Delete every chunk row of a file. Returns the number of rows deleted."""
    stmt = delete(DocumentStoreFileChunk).where(DocumentStoreFileChunk.doc_id == doc_id)
    result = await session.execute(stmt)
    deleted = result.rowcount or 0  # type: ignore[attr-defined]
    logger.debug("Deleted %d chunks of file %s", deleted, doc_id)
    return deleted


async def delete_store_chunks(session: AsyncSession, store_id: str) -> int:
    """Delete every chunk row of a store. Returns the number of rows deleted."""
    stmt = delete(DocumentStoreFileChunk).where(DocumentStoreFileChunk.store_id == store_id)
    result = await session.execute(stmt)
    return result.rowcount or 0  # type: ignore[attr-defined]


async def delete_orphan_chunks(
    session: AsyncSession, store_id: str, live_doc_ids: Collection[str]
) -> int:
    """Delete chunk rows of a store whose file is not in ``live_doc_ids``."""
    stmt = delete(DocumentStoreFileChunk).where(DocumentStoreFileChunk.store_id == store_id)
    if live_doc_ids:
        stmt = stmt.where(DocumentStoreFileChunk.doc_id.not_in(list(live_doc_ids)))
    result = await session.execute(stmt)
    return result.rowcount or 0  # type: ignore[attr-defined]


async def find_file_chunks(
    session: AsyncSession, doc_id: str
) -> tuple[list[DocumentStoreFileChunk], int]:
    """Return a file's chunk rows in sequence order, with their count."""
    stmt = (
        select(DocumentStoreFileChunk)
        .where(DocumentStoreFileChunk.doc_id == doc_id)
        .order_by(DocumentStoreFileChunk.chunk_no)
    )
    result = await session.execute(stmt)
    rows = list(result.scalars().all())
    return rows, len(rows)


async def count_file_chunks(session: AsyncSession, doc_id: str) -> int:
    """Count a file's chunk rows."""
    stmt = (
        select(func.count())
        .select_from(DocumentStoreFileChunk)
        .where(DocumentStoreFileChunk.doc_id == doc_id)
    )
    result = await session.execute(stmt)
    return result.scalar() or 0


async def chunk_totals_by_file(session: AsyncSession, store_id: str) -> dict[str, tuple[int, int]]:
    """Recount (chunks, chars) per file of a store directly from chunk rows.

    Characters are counted in Python: SQLite's ``length()`` stops at the first
    NUL, while committed totals use ``len``.
    """
    stmt = select(DocumentStoreFileChunk.doc_id, DocumentStoreFileChunk.page_content).where(
        DocumentStoreFileChunk.store_id == store_id
    )
    totals: dict[str, tuple[int, int]] = {}
    for doc_id, page_content in await session.execute(stmt):
        chunks, chars = totals.get(doc_id, (0, 0))
        totals[doc_id] = (chunks + 1, chars + len(page_content or ""))
    return totals
