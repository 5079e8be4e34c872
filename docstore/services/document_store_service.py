"""Document store service: the sync engine behind uploads, deletes and chunking.

Every mutating operation reads the store row, changes its manifest and
metrics together with the chunk rows in one session transaction, and commits
once. A failure rolls the whole transaction back, so retrying an operation
converges to the same end state.

Operations on the same store are not serialized here; callers must not run
two mutating operations against one store concurrently (the HTTP layer holds
a per-store lock).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from docstore.exceptions import ConflictError, NotFoundError, StorageUnavailableError
from docstore.filesystem.storage_manager import safe_file_name
from docstore.models.document_store import DocumentStore
from docstore.schemas.document_store import (
    ChunkResponse,
    DocumentStoreResponse,
    DocumentStoreStatus,
    FileChunksResult,
    FileDescriptor,
    FileManifest,
    StoreMetrics,
)
from docstore.services.chunk_service import (
    add_chunks,
    delete_file_chunks,
    delete_store_chunks,
    find_file_chunks,
)
from docstore.services.datetime_service import now_utc
from docstore.services.metrics_service import (
    add_files,
    apply_file_counts,
    derive_store_status,
    reconcile_store,
    remove_file,
    retire_file_counts,
    status_after_upload,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from docstore.filesystem.storage_manager import StorageManager
    from docstore.schemas.document_store import (
        ChunkingConfig,
        DocumentStoreCreate,
        DocumentStoreUpdate,
        ReconcileReport,
        SplitResult,
    )
    from docstore.services.splitter_gateway import SplitterGateway

logger = logging.getLogger(__name__)


@dataclass
class UploadedFile:
    """Raw bytes of a file to add to a store."""

    name: str
    content: bytes


def store_to_response(store: DocumentStore) -> DocumentStoreResponse:
    """Build the API representation of a store."""
    return DocumentStoreResponse(
        id=store.id,
        name=store.name,
        description=store.description,
        sub_folder=store.sub_folder,
        status=DocumentStoreStatus(store.status),
        files=store.manifest.files,
        metrics=store.store_metrics,
        created_at=store.created_at,
        updated_at=store.updated_at,
    )


@dataclass
class DocumentStoreService:
    """Orchestrates store operations over the manifest, chunks and metrics."""

    storage: StorageManager
    splitter: SplitterGateway
    purge_replaced_chunks: bool = False

    async def _get_store(
        self, session: AsyncSession, store_id: str, operation: str
    ) -> DocumentStore:
        store = await session.get(DocumentStore, store_id, populate_existing=True)
        if store is None:
            raise NotFoundError(
                f"Document store {store_id} not found", operation=operation, store_id=store_id
            )
        return store

    def _require_folder(self, store: DocumentStore, operation: str) -> None:
        if not self.storage.folder_exists(store.sub_folder):
            raise StorageUnavailableError(
                f"Missing storage folder for document store {store.name}",
                operation=operation,
                store_id=store.id,
            )

    @staticmethod
    def _find_file(
        store: DocumentStore, manifest: FileManifest, file_id: str, operation: str
    ) -> FileDescriptor:
        found = manifest.find(file_id)
        if found is None:
            raise NotFoundError(
                f"File {file_id} not found in document store {store.name}",
                operation=operation,
                store_id=store.id,
                file_id=file_id,
            )
        return found

    # ── Store CRUD ───────────────────────────────────

    async def create_document_store(
        self, session: AsyncSession, body: DocumentStoreCreate
    ) -> DocumentStore:
        """Create an empty store and its storage folder."""
        operation = "create_document_store"
        existing = await session.execute(
            select(DocumentStore.id).where(DocumentStore.name == body.name)
        )
        if existing.first() is not None:
            raise ConflictError(f"Document store {body.name!r} already exists", operation=operation)

        now = now_utc()
        store = DocumentStore(
            id=str(uuid.uuid4()),
            name=body.name,
            description=body.description,
            sub_folder=body.sub_folder or str(uuid.uuid4()),
            status=DocumentStoreStatus.EMPTY.value,
            created_at=now,
            updated_at=now,
        )
        store.manifest = FileManifest()
        store.store_metrics = StoreMetrics()
        session.add(store)
        try:
            await session.flush()
            self.storage.create_store_dir(store.sub_folder)
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            raise ConflictError(
                f"Document store {body.name!r} already exists", operation=operation
            ) from exc
        except Exception:
            await session.rollback()
            raise
        logger.info("Created document store %s (%s)", store.id, store.name)
        return store

    async def get_all_document_stores(self, session: AsyncSession) -> list[DocumentStore]:
        """List all stores ordered by name."""
        result = await session.execute(select(DocumentStore).order_by(DocumentStore.name))
        return list(result.scalars().all())

    async def get_document_store(self, session: AsyncSession, store_id: str) -> DocumentStore:
        """Get a store by id. Raises NotFoundError."""
        return await self._get_store(session, store_id, "get_document_store")

    async def update_document_store(
        self, session: AsyncSession, store_id: str, body: DocumentStoreUpdate
    ) -> DocumentStore:
        """Update a store's name and description; never its files or metrics."""
        operation = "update_document_store"
        store = await self._get_store(session, store_id, operation)
        if body.name is not None and body.name != store.name:
            clash = await session.execute(
                select(DocumentStore.id).where(
                    DocumentStore.name == body.name, DocumentStore.id != store_id
                )
            )
            if clash.first() is not None:
                raise ConflictError(
                    f"Document store {body.name!r} already exists",
                    operation=operation,
                    store_id=store_id,
                )
            store.name = body.name
        if "description" in body.model_fields_set:
            store.description = body.description
        try:
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        return store

    async def delete_document_store(self, session: AsyncSession, store_id: str) -> None:
        """Delete a store, all of its chunk records and its storage folder."""
        operation = "delete_document_store"
        store = await self._get_store(session, store_id, operation)
        try:
            deleted = await delete_store_chunks(session, store.id)
            await session.delete(store)
            await session.flush()
            self.storage.remove_store_dir(store.sub_folder)
            await session.commit()
        except Exception:
            await session.rollback()
            logger.error("Failed to delete document store %s", store_id)
            raise
        logger.info("Deleted document store %s with %d chunks", store_id, deleted)

    # ── File manifest ────────────────────────────────

    async def upload_files(
        self, session: AsyncSession, store_id: str, files: Sequence[UploadedFile]
    ) -> DocumentStore:
        """Add files to a store's manifest with status NEW.

        A descriptor whose name matches an incoming file is replaced. Its
        chunk rows stay in place unless ``purge_replaced_chunks`` is set; its
        counts leave the metrics either way.
        """
        operation = "upload_files"
        store = await self._get_store(session, store_id, operation)
        self._require_folder(store, operation)
        if not files:
            raise ValueError("No files to upload")

        # Last upload wins when a batch repeats a name
        incoming: dict[str, UploadedFile] = {}
        for upload in files:
            name = safe_file_name(upload.name)
            incoming.pop(name, None)
            incoming[name] = upload

        manifest = store.manifest
        metrics = store.store_metrics
        had_files = bool(manifest.files)

        writes = self.storage.begin_writes(store.sub_folder)
        try:
            new_files: list[FileDescriptor] = []
            for name, upload in incoming.items():
                file_path = writes.write(name, upload.content)
                new_files.append(
                    FileDescriptor(
                        id=str(uuid.uuid4()),
                        name=name,
                        path=str(file_path),
                        size=file_path.stat().st_size,
                        uploaded=now_utc(),
                    )
                )

            kept: list[FileDescriptor] = []
            for existing in manifest.files:
                if existing.name not in incoming:
                    kept.append(existing)
                    continue
                metrics = remove_file(metrics, existing)
                if self.purge_replaced_chunks:
                    await delete_file_chunks(session, existing.id)
                logger.info(
                    "Replacing file %s (%s) in store %s", existing.id, existing.name, store.id
                )

            manifest.files = kept + new_files
            store.manifest = manifest
            store.store_metrics = add_files(metrics, new_files)
            store.status = status_after_upload(had_files).value
            await session.commit()
        except Exception:
            await session.rollback()
            writes.discard()
            logger.error("Upload to document store %s failed", store_id)
            raise
        writes.keep()

        logger.info("Uploaded %d file(s) to document store %s", len(new_files), store.id)
        return store

    async def delete_file(
        self, session: AsyncSession, store_id: str, file_id: str
    ) -> DocumentStore:
        """Remove a file: its bytes, descriptor, chunk rows and metrics share.

        The database changes are flushed before the bytes are removed and
        committed after, so a failure at any step leaves the row untouched.
        Retrying after success raises NotFoundError.
        """
        operation = "delete_file"
        store = await self._get_store(session, store_id, operation)
        self._require_folder(store, operation)
        manifest = store.manifest
        found = self._find_file(store, manifest, file_id, operation)

        try:
            deleted = await delete_file_chunks(session, found.id)
            manifest.files = [file for file in manifest.files if file.id != found.id]
            store.manifest = manifest
            store.store_metrics = remove_file(store.store_metrics, found)
            store.status = derive_store_status(manifest).value
            await session.flush()
            self.storage.remove_file(found.path)
            await session.commit()
        except Exception:
            await session.rollback()
            logger.error("Deleting file %s from document store %s failed", file_id, store_id)
            raise

        logger.info(
            "Deleted file %s (%s) and %d chunks from document store %s",
            found.id,
            found.name,
            deleted,
            store.id,
        )
        return store

    # ── Chunking ─────────────────────────────────────

    async def preview_chunks(
        self, session: AsyncSession, store_id: str, file_id: str, config: ChunkingConfig
    ) -> SplitResult:
        """Split a file without persisting anything."""
        operation = "preview_chunks"
        store = await self._get_store(session, store_id, operation)
        found = self._find_file(store, store.manifest, file_id, operation)
        return await self.splitter.split(config, found, store_id=store.id)

    async def process_chunks(
        self, session: AsyncSession, store_id: str, file_id: str, config: ChunkingConfig
    ) -> FileChunksResult:
        """Re-chunk a file and make the new chunk rows authoritative.

        Old chunk rows are deleted before new ones are inserted; the store
        metrics never count both. Retrying is safe: each run fully replaces
        the file's chunks (with new chunk ids).
        """
        operation = "process_chunks"
        result = await self.preview_chunks(session, store_id, file_id, config)

        store = await self._get_store(session, store_id, operation)
        manifest = store.manifest
        found = manifest.find(file_id)
        if found is None:
            raise ConflictError(
                f"File {file_id} left document store {store.name} while it was being chunked",
                operation=operation,
                store_id=store_id,
                file_id=file_id,
            )

        try:
            await delete_file_chunks(session, found.id)
            metrics = retire_file_counts(store.store_metrics, found)
            await add_chunks(session, store.id, found.id, result.chunks)

            found.total_chunks = result.total_chunks
            found.total_chars = sum(len(chunk.page_content) for chunk in result.chunks)
            found.status = DocumentStoreStatus.SYNC
            found.config = config.model_dump_json(exclude={"credential"})

            store.manifest = manifest
            store.store_metrics = apply_file_counts(metrics, found.total_chunks, found.total_chars)
            store.status = derive_store_status(manifest).value
            await session.commit()
        except Exception:
            await session.rollback()
            logger.error("Chunking file %s of document store %s failed", file_id, store_id)
            raise

        logger.info(
            "Committed %d chunks (%d chars) for file %s of document store %s",
            found.total_chunks,
            found.total_chars,
            found.id,
            store.id,
        )
        return await self.get_file_chunks(session, store_id, file_id)

    async def get_file_chunks(
        self, session: AsyncSession, store_id: str, file_id: str
    ) -> FileChunksResult:
        """Get a file's chunk rows with their count and the file's descriptor."""
        operation = "get_file_chunks"
        store = await self._get_store(session, store_id, operation)
        found = self._find_file(store, store.manifest, file_id, operation)
        rows, count = await find_file_chunks(session, file_id)
        return FileChunksResult(
            chunks=[ChunkResponse.model_validate(row) for row in rows],
            count=count,
            file=found,
            store_name=store.name,
        )

    # ── Verification ─────────────────────────────────

    async def reconcile(
        self,
        session: AsyncSession,
        store_id: str,
        *,
        repair: bool = False,
        purge_orphans: bool = False,
    ) -> ReconcileReport:
        """Recount a store from its chunk rows, optionally repairing it."""
        store = await self._get_store(session, store_id, "reconcile")
        try:
            report = await reconcile_store(
                session, store, repair=repair, purge_orphans=purge_orphans
            )
            if repair:
                await session.commit()
        except Exception:
            await session.rollback()
            raise
        return report
