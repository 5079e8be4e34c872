"""Tests for the metrics reconciler."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from docstore.schemas.document_store import (
    ChunkContent,
    ChunkingConfig,
    DocumentStoreCreate,
    DocumentStoreStatus,
    FileDescriptor,
    FileManifest,
    StoreMetrics,
)
from docstore.services.chunk_service import add_chunks, count_file_chunks
from docstore.services.document_store_service import UploadedFile
from docstore.services.metrics_service import (
    add_files,
    apply_file_counts,
    compute_metrics,
    derive_store_status,
    find_inconsistencies,
    reconcile_store,
    reconciled_status,
    remove_file,
    retire_file_counts,
    status_after_upload,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from docstore.services.document_store_service import DocumentStoreService

SYNC = DocumentStoreStatus.SYNC
NEW = DocumentStoreStatus.NEW
STALE = DocumentStoreStatus.STALE
EMPTY = DocumentStoreStatus.EMPTY


def _file(
    file_id: str, chunks: int = 0, chars: int = 0, status: DocumentStoreStatus = NEW
) -> FileDescriptor:
    return FileDescriptor(
        id=file_id,
        name=f"{file_id}.txt",
        path=f"/{file_id}.txt",
        total_chunks=chunks,
        total_chars=chars,
        status=status,
    )


class TestMetricsArithmetic:
    def test_add_files(self) -> None:
        metrics = add_files(StoreMetrics(), [_file("a", 3, 120), _file("b")])
        assert metrics == StoreMetrics(total_files=2, total_chunks=3, total_chars=120)

    def test_add_files_does_not_mutate_input(self) -> None:
        before = StoreMetrics(total_files=1)
        add_files(before, [_file("a")])
        assert before.total_files == 1

    def test_remove_file(self) -> None:
        metrics = StoreMetrics(total_files=2, total_chunks=5, total_chars=200)
        assert remove_file(metrics, _file("a", 3, 120)) == StoreMetrics(
            total_files=1, total_chunks=2, total_chars=80
        )

    def test_retire_then_apply(self) -> None:
        metrics = StoreMetrics(total_files=1, total_chunks=3, total_chars=120)
        retired = retire_file_counts(metrics, _file("a", 3, 120))
        assert retired == StoreMetrics(total_files=1)
        assert apply_file_counts(retired, 5, 118) == StoreMetrics(
            total_files=1, total_chunks=5, total_chars=118
        )

    def test_compute_metrics_and_inconsistencies(self) -> None:
        manifest = FileManifest(files=[_file("a", 3, 120), _file("b", 1, 10)])
        assert compute_metrics(manifest) == StoreMetrics(
            total_files=2, total_chunks=4, total_chars=130
        )
        assert find_inconsistencies(manifest, compute_metrics(manifest)) == []

        drifted = StoreMetrics(total_files=2, total_chunks=7, total_chars=130)
        problems = find_inconsistencies(manifest, drifted)
        assert problems == ["total_chunks: recorded 7, manifest sums to 4"]


class TestStatusDerivation:
    def test_status_after_upload(self) -> None:
        assert status_after_upload(had_files=False) == NEW
        assert status_after_upload(had_files=True) == STALE

    @pytest.mark.parametrize(
        ("statuses", "expected"),
        [
            ([], SYNC),
            ([SYNC], SYNC),
            ([SYNC, SYNC], SYNC),
            ([SYNC, NEW], STALE),
            ([NEW], STALE),
            ([STALE, SYNC], STALE),
        ],
    )
    def test_derive_store_status(
        self, statuses: list[DocumentStoreStatus], expected: DocumentStoreStatus
    ) -> None:
        manifest = FileManifest(
            files=[_file(f"f{i}", status=status) for i, status in enumerate(statuses)]
        )
        assert derive_store_status(manifest) == expected

    @pytest.mark.parametrize(
        ("current", "statuses", "expected"),
        [
            ("EMPTY", [], EMPTY),
            ("STALE", [], SYNC),
            ("NEW", [NEW], NEW),
            ("SYNC", [NEW], STALE),
            ("EMPTY", [NEW], STALE),
            ("STALE", [SYNC], SYNC),
        ],
    )
    def test_reconciled_status(
        self, current: str, statuses: list[DocumentStoreStatus], expected: DocumentStoreStatus
    ) -> None:
        manifest = FileManifest(
            files=[_file(f"f{i}", status=status) for i, status in enumerate(statuses)]
        )
        assert reconciled_status(current, manifest) == expected


class TestReconcileStore:
    async def _synced_store(self, service: DocumentStoreService, session: AsyncSession) -> str:
        store = await service.create_document_store(session, DocumentStoreCreate(name="kb"))
        store = await service.upload_files(
            session, store.id, [UploadedFile(name="a.txt", content=b"x" * 120)]
        )
        file_id = store.manifest.files[0].id
        await service.process_chunks(
            session, store.id, file_id, ChunkingConfig(splitter_config={"chunk_size": 40})
        )
        return store.id

    @pytest.mark.asyncio
    async def test_consistent_store(
        self, service: DocumentStoreService, db_session: AsyncSession
    ) -> None:
        store_id = await self._synced_store(service, db_session)
        store = await service.get_document_store(db_session, store_id)

        report = await reconcile_store(db_session, store)

        assert report.consistent is True
        assert report.actual_metrics == StoreMetrics(total_files=1, total_chunks=3, total_chars=120)
        assert report.files == []
        assert report.orphan_chunks == 0
        assert report.repaired is False

    @pytest.mark.asyncio
    async def test_detects_and_repairs_drift(
        self, service: DocumentStoreService, db_session: AsyncSession
    ) -> None:
        store_id = await self._synced_store(service, db_session)
        store = await service.get_document_store(db_session, store_id)
        file_id = store.manifest.files[0].id
        await add_chunks(db_session, store_id, file_id, [ChunkContent(page_content="extra")])
        await db_session.commit()

        report = await service.reconcile(db_session, store_id)
        assert report.consistent is False
        assert report.files[0].recorded_chunks == 3
        assert report.files[0].actual_chunks == 4
        assert report.files[0].actual_chars == 125

        repaired = await service.reconcile(db_session, store_id, repair=True)
        assert repaired.repaired is True

        store = await service.get_document_store(db_session, store_id)
        assert store.store_metrics == StoreMetrics(total_files=1, total_chunks=4, total_chars=125)
        assert store.manifest.files[0].total_chunks == 4
        assert store.status == SYNC

        after = await service.reconcile(db_session, store_id)
        assert after.consistent is True

    @pytest.mark.asyncio
    async def test_orphans_reported_and_purged(
        self, service: DocumentStoreService, db_session: AsyncSession
    ) -> None:
        store_id = await self._synced_store(service, db_session)
        await add_chunks(db_session, store_id, "gone-file", [ChunkContent(page_content="old")])
        await db_session.commit()

        report = await service.reconcile(db_session, store_id)
        assert report.orphan_chunks == 1
        # Orphans are not part of any live file, so the metrics still agree
        assert report.consistent is True

        await service.reconcile(db_session, store_id, repair=True, purge_orphans=True)
        assert await count_file_chunks(db_session, "gone-file") == 0
        report = await service.reconcile(db_session, store_id)
        assert report.orphan_chunks == 0

    @pytest.mark.asyncio
    async def test_nul_in_content_is_not_drift(
        self, service: DocumentStoreService, db_session: AsyncSession
    ) -> None:
        store = await service.create_document_store(db_session, DocumentStoreCreate(name="kb"))
        store = await service.upload_files(
            db_session, store.id, [UploadedFile(name="a.txt", content=b"ab\x00cdefgh")]
        )
        await service.process_chunks(
            db_session, store.id, store.manifest.files[0].id, ChunkingConfig()
        )

        report = await service.reconcile(db_session, store.id, repair=True)

        assert report.consistent is True
        store = await service.get_document_store(db_session, store.id)
        assert store.store_metrics.total_chars == 9
        assert store.manifest.files[0].total_chars == 9
