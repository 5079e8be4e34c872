"""SQLAlchemy ORM models for docstore."""

from docstore.models.base import Base
from docstore.models.chunk import DocumentStoreFileChunk
from docstore.models.document_store import DocumentStore

__all__ = [
    "Base",
    "DocumentStore",
    "DocumentStoreFileChunk",
]
