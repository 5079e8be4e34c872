"""Document store model."""

from __future__ import annotations

from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from docstore.exceptions import InternalServerError
from docstore.models.base import Base
from docstore.schemas.document_store import DocumentStoreStatus, FileManifest, StoreMetrics
from docstore.services.datetime_service import now_utc

_ModelT = TypeVar("_ModelT", bound=BaseModel)


def _load(model: type[_ModelT], raw: Any, store_id: str | None) -> _ModelT:
    # Legacy rows hold the sub-documents as JSON text
    try:
        if isinstance(raw, str):
            return model.model_validate_json(raw)
        return model.model_validate(raw if raw is not None else {})
    except ValidationError as exc:
        raise InternalServerError(
            f"Corrupt {model.__name__} in document store {store_id}: {exc}"
        ) from exc


class DocumentStore(Base):
    """A named collection of files, persisted as a single record.

    The file manifest and the aggregate metrics are JSON sub-documents of the
    row. Use the typed ``manifest`` and ``store_metrics`` accessors; assigning
    them writes a fresh JSON value so the change is picked up on flush.
    """

    __tablename__ = "document_store"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sub_folder: Mapped[str] = mapped_column(String, nullable=False)
    files: Mapped[Any] = mapped_column(JSON, nullable=False)
    metrics: Mapped[Any] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=DocumentStoreStatus.EMPTY.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc, onupdate=now_utc
    )

    @property
    def manifest(self) -> FileManifest:
        return _load(FileManifest, self.files, self.id)

    @manifest.setter
    def manifest(self, value: FileManifest) -> None:
        self.files = value.model_dump(mode="json")

    @property
    def store_metrics(self) -> StoreMetrics:
        return _load(StoreMetrics, self.metrics, self.id)

    @store_metrics.setter
    def store_metrics(self, value: StoreMetrics) -> None:
        self.metrics = value.model_dump(mode="json")
