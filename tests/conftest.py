"""Shared test fixtures for docstore."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from docstore.config import Settings
from docstore.database import init_schema
from docstore.exceptions import UpstreamProcessingError
from docstore.filesystem.storage_manager import StorageManager
from docstore.main import build_document_store_service, create_app
from docstore.schemas.document_store import ChunkContent, SplitResult
from docstore.services.document_store_service import DocumentStoreService

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from docstore.schemas.document_store import ChunkingConfig, FileDescriptor

logger = logging.getLogger(__name__)


class FixedSizeSplitter:
    """Splitter gateway stub: cuts a file's text into ``chunk_size`` pieces.

    ``splitter_config["chunk_size"]`` sets the piece length (default 40).
    Setting ``fail`` makes the next calls raise UpstreamProcessingError.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail = False

    async def split(
        self, config: ChunkingConfig, file: FileDescriptor, *, store_id: str | None = None
    ) -> SplitResult:
        self.calls.append((file.id, config.model_dump_json()))
        if self.fail:
            raise UpstreamProcessingError(
                "splitter unavailable",
                operation="split",
                store_id=store_id,
                file_id=file.id,
            )
        size = int(config.splitter_config.get("chunk_size", 40))
        text = Path(file.path).read_text(encoding="utf-8")
        chunks = [
            ChunkContent(page_content=text[i : i + size], metadata={"source": file.name, "i": i})
            for i in range(0, len(text), size)
        ]
        return SplitResult(
            chunks=chunks,
            total_chunks=len(chunks),
            total_chars=sum(len(c.page_content) for c in chunks),
        )


@asynccontextmanager
async def create_test_client(settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully initialized app.

    Manually performs the work of the application lifespan (DB schema,
    storage folder, service wiring) because ASGITransport does not trigger it.
    """
    from docstore.database import create_engine as create_db_engine

    app = create_app(settings)

    engine, session_factory = create_db_engine(settings)
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.settings = settings
    await init_schema(engine)
    app.state.document_store_service = build_document_store_service(settings)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    await engine.dispose()


@pytest.fixture
def tmp_storage_dir(tmp_path: Path) -> Path:
    """Create a temporary storage root with the datasource folder."""
    storage = tmp_path / "storage"
    (storage / "datasource").mkdir(parents=True)
    return storage


@pytest.fixture
def test_settings(tmp_storage_dir: Path, tmp_path: Path) -> Settings:
    """Create test settings with temporary paths."""
    db_path = tmp_path / "test.db"
    return Settings(
        _env_file=None,
        debug=True,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        storage_dir=tmp_storage_dir,
    )


@pytest.fixture
def storage_manager(tmp_storage_dir: Path) -> StorageManager:
    return StorageManager(storage_dir=tmp_storage_dir)


@pytest.fixture
def splitter() -> FixedSizeSplitter:
    return FixedSizeSplitter()


@pytest.fixture
def service(storage_manager: StorageManager, splitter: FixedSizeSplitter) -> DocumentStoreService:
    """Sync engine wired to the temporary storage and the stub splitter."""
    return DocumentStoreService(storage=storage_manager, splitter=splitter)


@pytest.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create a test database engine with the schema in place."""
    engine = create_async_engine(
        test_settings.database_url,
        echo=False,
    )
    await init_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(
    db_engine: AsyncEngine,
) -> AsyncGenerator[AsyncSession]:
    """Create a test database session."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(test_settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Create test HTTP client."""
    async with create_test_client(test_settings) as ac:
        yield ac
