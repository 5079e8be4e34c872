"""Metrics reconciler: store-level counters and status derivation.

Counters are maintained incrementally by the sync engine through the pure
helpers below. ``reconcile_store`` recounts them from the chunk records and is
meant for verification and repair, not for the normal request path.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from docstore.schemas.document_store import (
    DocumentStoreStatus,
    FileInconsistency,
    ReconcileReport,
    StoreMetrics,
)
from docstore.services.chunk_service import chunk_totals_by_file, delete_orphan_chunks

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from docstore.models.document_store import DocumentStore
    from docstore.schemas.document_store import FileDescriptor, FileManifest

logger = logging.getLogger(__name__)


def add_files(metrics: StoreMetrics, files: Iterable[FileDescriptor]) -> StoreMetrics:
    """Count newly appended descriptors into the metrics."""
    result = metrics.model_copy()
    for file in files:
        result.total_files += 1
        result.total_chunks += file.total_chunks
        result.total_chars += file.total_chars
    return result


def remove_file(metrics: StoreMetrics, file: FileDescriptor) -> StoreMetrics:
    """Take a descriptor that leaves the manifest out of the metrics."""
    return StoreMetrics(
        total_files=metrics.total_files - 1,
        total_chunks=metrics.total_chunks - file.total_chunks,
        total_chars=metrics.total_chars - file.total_chars,
    )


def retire_file_counts(metrics: StoreMetrics, file: FileDescriptor) -> StoreMetrics:
    """Subtract a file's chunk and char counts; the file itself stays."""
    return StoreMetrics(
        total_files=metrics.total_files,
        total_chunks=metrics.total_chunks - file.total_chunks,
        total_chars=metrics.total_chars - file.total_chars,
    )


def apply_file_counts(metrics: StoreMetrics, total_chunks: int, total_chars: int) -> StoreMetrics:
    """Add a freshly committed file's counts."""
    return StoreMetrics(
        total_files=metrics.total_files,
        total_chunks=metrics.total_chunks + total_chunks,
        total_chars=metrics.total_chars + total_chars,
    )


def compute_metrics(manifest: FileManifest) -> StoreMetrics:
    """Recompute metrics from scratch as sums over the manifest."""
    return add_files(StoreMetrics(), manifest.files)


def find_inconsistencies(manifest: FileManifest, metrics: StoreMetrics) -> list[str]:
    """Describe every metrics counter that disagrees with the manifest."""
    expected = compute_metrics(manifest)
    problems: list[str] = []
    for field_name in ("total_files", "total_chunks", "total_chars"):
        recorded = getattr(metrics, field_name)
        actual = getattr(expected, field_name)
        if recorded != actual:
            problems.append(f"{field_name}: recorded {recorded}, manifest sums to {actual}")
    return problems


def status_after_upload(had_files: bool) -> DocumentStoreStatus:
    """Store status once new files are appended."""
    return DocumentStoreStatus.STALE if had_files else DocumentStoreStatus.NEW


def derive_store_status(manifest: FileManifest) -> DocumentStoreStatus:
    """SYNC when every file is SYNC (vacuously for no files), otherwise STALE."""
    if all(file.status == DocumentStoreStatus.SYNC for file in manifest.files):
        return DocumentStoreStatus.SYNC
    return DocumentStoreStatus.STALE


def reconciled_status(current: str, manifest: FileManifest) -> DocumentStoreStatus:
    """Correct ``current`` only where it contradicts the manifest."""
    current_status = DocumentStoreStatus(current)
    if not manifest.files:
        if current_status in (DocumentStoreStatus.EMPTY, DocumentStoreStatus.SYNC):
            return current_status
        return DocumentStoreStatus.SYNC
    derived = derive_store_status(manifest)
    if derived == DocumentStoreStatus.SYNC:
        return derived
    if current_status in (DocumentStoreStatus.NEW, DocumentStoreStatus.STALE):
        return current_status
    return DocumentStoreStatus.STALE


async def reconcile_store(
    session: AsyncSession,
    store: DocumentStore,
    *,
    repair: bool = False,
    purge_orphans: bool = False,
) -> ReconcileReport:
    """Recount a store's metrics from its chunk records.

    Compares every descriptor's counts with its actual chunk rows and the
    store metrics with the recounted totals. With ``repair`` the descriptors,
    metrics and status are rewritten from the recount (the caller commits);
    ``purge_orphans`` additionally deletes chunk rows of files no longer in
    the manifest.
    """
    manifest = store.manifest
    recorded_metrics = store.store_metrics
    totals = await chunk_totals_by_file(session, store.id)
    live_ids = {file.id for file in manifest.files}

    mismatches: list[FileInconsistency] = []
    for file in manifest.files:
        actual_chunks, actual_chars = totals.get(file.id, (0, 0))
        if (actual_chunks, actual_chars) != (file.total_chunks, file.total_chars):
            mismatches.append(
                FileInconsistency(
                    file_id=file.id,
                    name=file.name,
                    recorded_chunks=file.total_chunks,
                    actual_chunks=actual_chunks,
                    recorded_chars=file.total_chars,
                    actual_chars=actual_chars,
                )
            )

    orphan_chunks = sum(count for doc_id, (count, _) in totals.items() if doc_id not in live_ids)
    actual_metrics = StoreMetrics(
        total_files=len(manifest.files),
        total_chunks=sum(totals.get(file_id, (0, 0))[0] for file_id in live_ids),
        total_chars=sum(totals.get(file_id, (0, 0))[1] for file_id in live_ids),
    )
    consistent = not mismatches and recorded_metrics == actual_metrics

    report = ReconcileReport(
        store_id=store.id,
        consistent=consistent,
        recorded_metrics=recorded_metrics,
        actual_metrics=actual_metrics,
        files=mismatches,
        orphan_chunks=orphan_chunks,
    )
    if not consistent:
        logger.warning(
            "Store %s metrics drifted: recorded %s, actual %s, %d file(s) mismatched",
            store.id,
            recorded_metrics.model_dump(),
            actual_metrics.model_dump(),
            len(mismatches),
        )
        for problem in find_inconsistencies(manifest, recorded_metrics):
            logger.warning("Store %s metrics disagree with manifest: %s", store.id, problem)

    if not repair:
        return report

    for file in manifest.files:
        file.total_chunks, file.total_chars = totals.get(file.id, (0, 0))
    store.manifest = manifest
    store.store_metrics = compute_metrics(manifest)
    store.status = reconciled_status(store.status, manifest).value
    if purge_orphans and orphan_chunks:
        deleted = await delete_orphan_chunks(session, store.id, live_ids)
        logger.info("Deleted %d orphan chunks of store %s", deleted, store.id)
    await session.flush()
    report.repaired = True
    return report
