"""Document store API endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from docstore.api.deps import (
    get_document_store_service,
    get_session,
    get_settings,
    get_store_locks,
)
from docstore.api.locks import StoreLockRegistry
from docstore.config import Settings
from docstore.loaders.registry import list_loaders, list_splitters
from docstore.schemas.document_store import (
    ChunkContent,
    ChunkingConfig,
    ComponentsResponse,
    DocumentStoreCreate,
    DocumentStoreResponse,
    DocumentStoreUpdate,
    FileChunksResult,
    LoaderInvocation,
    ReconcileReport,
    SplitResult,
)
from docstore.services.document_store_service import (
    DocumentStoreService,
    UploadedFile,
    store_to_response,
)
from docstore.services.loader_service import process_chunks_with_loader

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/document-stores", tags=["document-stores"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]
ServiceDep = Annotated[DocumentStoreService, Depends(get_document_store_service)]
LocksDep = Annotated[StoreLockRegistry, Depends(get_store_locks)]


@router.get("/components", response_model=ComponentsResponse)
async def list_components() -> ComponentsResponse:
    """List the registered loader and splitter names."""
    return ComponentsResponse(loaders=list_loaders(), splitters=list_splitters())


@router.post("/loader/process", response_model=list[ChunkContent])
async def process_with_loader(body: LoaderInvocation) -> list[ChunkContent]:
    """Run a loader (and optional splitter) directly and return its documents."""
    documents = await asyncio.to_thread(process_chunks_with_loader, body)
    return [
        ChunkContent(page_content=doc.page_content, metadata=dict(doc.metadata))
        for doc in documents
    ]


@router.get("", response_model=list[DocumentStoreResponse])
async def list_document_stores(
    session: SessionDep, service: ServiceDep
) -> list[DocumentStoreResponse]:
    """List all document stores."""
    stores = await service.get_all_document_stores(session)
    return [store_to_response(store) for store in stores]


@router.post("", response_model=DocumentStoreResponse, status_code=201)
async def create_document_store(
    body: DocumentStoreCreate, session: SessionDep, service: ServiceDep
) -> DocumentStoreResponse:
    """Create an empty document store."""
    store = await service.create_document_store(session, body)
    return store_to_response(store)


@router.get("/{store_id}", response_model=DocumentStoreResponse)
async def get_document_store(
    store_id: str, session: SessionDep, service: ServiceDep
) -> DocumentStoreResponse:
    """Get a single document store."""
    store = await service.get_document_store(session, store_id)
    return store_to_response(store)


@router.put("/{store_id}", response_model=DocumentStoreResponse)
async def update_document_store(
    store_id: str,
    body: DocumentStoreUpdate,
    session: SessionDep,
    service: ServiceDep,
    locks: LocksDep,
) -> DocumentStoreResponse:
    """Update a document store's name or description."""
    async with locks.lock(store_id):
        store = await service.update_document_store(session, store_id, body)
    return store_to_response(store)


@router.delete("/{store_id}", status_code=204)
async def delete_document_store(
    store_id: str, session: SessionDep, service: ServiceDep, locks: LocksDep
) -> None:
    """Delete a document store with all of its files and chunks."""
    async with locks.lock(store_id):
        await service.delete_document_store(session, store_id)


@router.post("/{store_id}/files", response_model=DocumentStoreResponse)
async def upload_files(
    store_id: str,
    files: list[UploadFile],
    session: SessionDep,
    service: ServiceDep,
    locks: LocksDep,
    settings: Annotated[Settings, Depends(get_settings)],
) -> DocumentStoreResponse:
    """Upload one or more files into a document store."""
    uploads: list[UploadedFile] = []
    for upload_file in files:
        content = await upload_file.read()
        if len(content) > settings.max_upload_size:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File too large: {upload_file.filename}",
            )
        uploads.append(UploadedFile(name=upload_file.filename or "", content=content))

    async with locks.lock(store_id):
        store = await service.upload_files(session, store_id, uploads)
    return store_to_response(store)


@router.delete("/{store_id}/files/{file_id}", response_model=DocumentStoreResponse)
async def delete_file(
    store_id: str, file_id: str, session: SessionDep, service: ServiceDep, locks: LocksDep
) -> DocumentStoreResponse:
    """Delete a file and its chunks from a document store."""
    async with locks.lock(store_id):
        store = await service.delete_file(session, store_id, file_id)
    return store_to_response(store)


@router.get("/{store_id}/files/{file_id}/chunks", response_model=FileChunksResult)
async def get_file_chunks(
    store_id: str, file_id: str, session: SessionDep, service: ServiceDep
) -> FileChunksResult:
    """Get the persisted chunks of a file."""
    return await service.get_file_chunks(session, store_id, file_id)


@router.post("/{store_id}/files/{file_id}/preview", response_model=SplitResult)
async def preview_chunks(
    store_id: str,
    file_id: str,
    config: ChunkingConfig,
    session: SessionDep,
    service: ServiceDep,
) -> SplitResult:
    """Split a file with the given configuration without saving anything."""
    return await service.preview_chunks(session, store_id, file_id, config)


@router.post("/{store_id}/files/{file_id}/process", response_model=FileChunksResult)
async def process_chunks(
    store_id: str,
    file_id: str,
    config: ChunkingConfig,
    session: SessionDep,
    service: ServiceDep,
    locks: LocksDep,
) -> FileChunksResult:
    """Chunk a file with the given configuration and persist the chunks."""
    async with locks.lock(store_id):
        return await service.process_chunks(session, store_id, file_id, config)


@router.post("/{store_id}/reconcile", response_model=ReconcileReport)
async def reconcile_document_store(
    store_id: str,
    session: SessionDep,
    service: ServiceDep,
    locks: LocksDep,
    repair: bool = Query(False),
    purge_orphans: bool = Query(False),
) -> ReconcileReport:
    """Recount a store's metrics from its chunk records, optionally repairing them."""
    async with locks.lock(store_id):
        return await service.reconcile(
            session, store_id, repair=repair, purge_orphans=purge_orphans
        )
