"""Health check endpoint."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from docstore.api.deps import get_document_store_service, get_session
from docstore.services.document_store_service import DocumentStoreService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

VERSION = "0.1.0"


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
    storage: str


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    session: Annotated[AsyncSession, Depends(get_session)],
    service: Annotated[DocumentStoreService, Depends(get_document_store_service)],
) -> HealthResponse:
    """Report database reachability and presence of the storage root."""
    db_status = "ok"
    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check database query failed", exc_info=True)
        db_status = "error"

    storage_status = "ok" if service.storage.datasource_root.is_dir() else "missing"
    healthy = db_status == "ok" and storage_status == "ok"

    return HealthResponse(
        status="ok" if healthy else "degraded",
        version=VERSION,
        database=db_status,
        storage=storage_status,
    )
