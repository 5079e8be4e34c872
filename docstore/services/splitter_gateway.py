"""Splitter gateway: turn a stored file into chunk content."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from docstore.schemas.document_store import ChunkContent, SplitResult
from docstore.services.loader_service import process_chunks_with_loader

if TYPE_CHECKING:
    from docstore.schemas.document_store import ChunkingConfig, FileDescriptor


@runtime_checkable
class SplitterGateway(Protocol):
    """Protocol for splitting capabilities used by the sync engine."""

    async def split(
        self, config: ChunkingConfig, file: FileDescriptor, *, store_id: str | None = None
    ) -> SplitResult:
        """Split ``file`` according to ``config``. Must not write anything."""
        ...


class LoaderSplitterGateway:
    """Splits files by running a registered loader and splitter on them."""

    async def split(
        self, config: ChunkingConfig, file: FileDescriptor, *, store_id: str | None = None
    ) -> SplitResult:
        documents = await asyncio.to_thread(
            process_chunks_with_loader,
            config,
            store_id=store_id,
            file_id=file.id,
            extra_inputs={"file_path": file.path},
        )
        chunks = [
            ChunkContent(page_content=doc.page_content, metadata=dict(doc.metadata))
            for doc in documents
        ]
        return SplitResult(
            chunks=chunks,
            total_chunks=len(chunks),
            total_chars=sum(len(chunk.page_content) for chunk in chunks),
        )
