"""Shared API dependencies: settings, DB session, document store service."""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from docstore.api.locks import StoreLockRegistry
from docstore.config import Settings
from docstore.services.document_store_service import DocumentStoreService


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_document_store_service(request: Request) -> DocumentStoreService:
    """Get the document store service from app state."""
    service: DocumentStoreService = request.app.state.document_store_service
    return service


async def get_session(request: Request) -> AsyncGenerator[AsyncSession]:
    """Get a database session."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


def get_store_locks(request: Request) -> StoreLockRegistry:
    """Get the per-store lock registry from app state."""
    locks: StoreLockRegistry = request.app.state.store_locks
    return locks
