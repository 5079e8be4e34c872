"""Document store schemas: manifest sub-documents and API payloads."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from docstore.services.datetime_service import now_utc, parse_datetime

MANIFEST_VERSION = 1


class DocumentStoreStatus(StrEnum):
    """Lifecycle status of a store, and of individual files within it."""

    EMPTY = "EMPTY"
    NEW = "NEW"
    STALE = "STALE"
    SYNC = "SYNC"


class _SubDocument(BaseModel):
    """Stored sub-document; accepts legacy camelCase keys, dumps snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileDescriptor(_SubDocument):
    """A single file in a store's manifest."""

    id: str
    name: str
    path: str
    size: int = Field(default=0, ge=0)
    uploaded: datetime = Field(default_factory=now_utc)
    status: DocumentStoreStatus = DocumentStoreStatus.NEW
    total_chunks: int = Field(default=0, ge=0)
    total_chars: int = Field(default=0, ge=0)
    config: str | None = None

    @field_validator("uploaded", mode="before")
    @classmethod
    def parse_uploaded(cls, v: Any) -> Any:
        """Accept lax timestamp strings written by older manifests."""
        _ = cls
        if isinstance(v, (str, datetime)):
            return parse_datetime(v)
        return v


class FileManifest(_SubDocument):
    """Ordered list of file descriptors, versioned for forward compatibility."""

    version: int = MANIFEST_VERSION
    files: list[FileDescriptor] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def upgrade_legacy(cls, data: Any) -> Any:
        """Version 0 manifests were stored as a bare JSON array of files."""
        _ = cls
        if isinstance(data, list):
            return {"version": MANIFEST_VERSION, "files": data}
        if isinstance(data, dict) and data.get("version", MANIFEST_VERSION) < MANIFEST_VERSION:
            return {**data, "version": MANIFEST_VERSION}
        return data

    def find(self, file_id: str) -> FileDescriptor | None:
        """Return the descriptor with the given id, if present."""
        for file in self.files:
            if file.id == file_id:
                return file
        return None

    def names(self) -> set[str]:
        return {file.name for file in self.files}


class StoreMetrics(_SubDocument):
    """Aggregate counters over all live files of a store."""

    total_files: int = 0
    total_chunks: int = 0
    total_chars: int = 0


class ChunkingConfig(BaseModel):
    """Loader and splitter selection used to chunk a file."""

    loader_name: str = Field(default="plainText", min_length=1)
    loader_config: dict[str, Any] = Field(default_factory=dict)
    splitter_name: str | None = "recursiveCharacterTextSplitter"
    splitter_config: dict[str, Any] = Field(default_factory=dict)
    credential: str | None = None


class LoaderInvocation(ChunkingConfig):
    """Request to run a loader directly, outside of any store."""

    loader_name: str = Field(min_length=1)


class ChunkContent(BaseModel):
    """A chunk produced by the splitter, not yet persisted."""

    page_content: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class SplitResult(BaseModel):
    """Chunks produced for one file with their totals."""

    chunks: list[ChunkContent] = Field(default_factory=list)
    total_chunks: int = Field(default=0, ge=0)
    total_chars: int = Field(default=0, ge=0)


class ChunkResponse(BaseModel):
    """A persisted chunk record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    doc_id: str
    store_id: str
    chunk_no: int
    page_content: str
    metadata: dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("chunk_metadata", "metadata")
    )


class FileChunksResult(BaseModel):
    """All chunk records of one file together with its descriptor."""

    chunks: list[ChunkResponse]
    count: int
    file: FileDescriptor
    store_name: str


def _clean_store_name(v: str) -> str:
    if not v.strip():
        raise ValueError("Store name must not be empty or whitespace-only")
    return v.strip()


class DocumentStoreCreate(BaseModel):
    """Request to create a document store."""

    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    sub_folder: str | None = Field(default=None, pattern=r"^[A-Za-z0-9][A-Za-z0-9_-]*$")

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        """Reject whitespace-only names."""
        _ = cls
        return _clean_store_name(v)


class DocumentStoreUpdate(BaseModel):
    """Request to update a store's display fields."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str | None) -> str | None:
        """Strip a new name and reject whitespace-only ones."""
        _ = cls
        return None if v is None else _clean_store_name(v)


class DocumentStoreResponse(BaseModel):
    """Document store detail response."""

    id: str
    name: str
    description: str | None = None
    sub_folder: str
    status: DocumentStoreStatus
    files: list[FileDescriptor] = Field(default_factory=list)
    metrics: StoreMetrics = Field(default_factory=StoreMetrics)
    created_at: datetime
    updated_at: datetime


class FileInconsistency(BaseModel):
    """Mismatch between a descriptor's counts and its actual chunk rows."""

    file_id: str
    name: str
    recorded_chunks: int
    actual_chunks: int
    recorded_chars: int
    actual_chars: int


class ReconcileReport(BaseModel):
    """Outcome of recounting a store's metrics from its chunk records."""

    store_id: str
    consistent: bool
    recorded_metrics: StoreMetrics
    actual_metrics: StoreMetrics
    files: list[FileInconsistency] = Field(default_factory=list)
    orphan_chunks: int = 0
    repaired: bool = False


class ComponentsResponse(BaseModel):
    """Registered loader and splitter names."""

    loaders: list[str]
    splitters: list[str]
