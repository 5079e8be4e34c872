"""Chunk record model."""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from docstore.models.base import Base


class DocumentStoreFileChunk(Base):
    """A persisted unit of split text, scoped to one file of one store.

    Chunks reference their file through ``doc_id`` only; the file manifest
    never points at chunk rows.
    """

    __tablename__ = "document_store_file_chunk"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    doc_id: Mapped[str] = mapped_column(String, nullable=False)
    store_id: Mapped[str] = mapped_column(String, nullable=False)
    chunk_no: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    page_content: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    chunk_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )

    __table_args__ = (
        Index("idx_chunks_doc_id", "doc_id"),
        Index("idx_chunks_store_id", "store_id"),
    )
