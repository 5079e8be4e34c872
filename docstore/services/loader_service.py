"""Loader invocation: resolve a loader and splitter by name and run them."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from docstore.exceptions import UpstreamProcessingError
from docstore.loaders.base import InvocationOptions, NodeData
from docstore.loaders.registry import LOADERS, SPLITTERS, get_loader, get_splitter

if TYPE_CHECKING:
    from langchain_core.documents import Document
    from langchain_text_splitters import TextSplitter

    from docstore.schemas.document_store import ChunkingConfig

logger = logging.getLogger(__name__)

OPERATION = "process_chunks_with_loader"


def _check_registered(config: ChunkingConfig) -> None:
    if config.loader_name not in LOADERS:
        msg = f"Unknown loader: {config.loader_name!r}. Available: {list(LOADERS)}"
        raise ValueError(msg)
    if config.splitter_name and config.splitter_name not in SPLITTERS:
        msg = f"Unknown splitter: {config.splitter_name!r}. Available: {list(SPLITTERS)}"
        raise ValueError(msg)


def process_chunks_with_loader(
    config: ChunkingConfig,
    *,
    store_id: str | None = None,
    file_id: str | None = None,
    extra_inputs: dict[str, object] | None = None,
) -> list[Document]:
    """Run the configured loader, splitting with the configured splitter.

    ``extra_inputs`` are merged over ``config.loader_config`` (the splitter
    gateway passes the file path this way). Unknown loader or splitter names
    raise ValueError; any failure inside the loader or splitter is raised as
    UpstreamProcessingError. Blocking: callers on the event loop should run
    this in a worker thread.
    """
    _check_registered(config)
    correlation_id = str(uuid.uuid4())

    try:
        splitter: TextSplitter | None = None
        if config.splitter_name:
            splitter = get_splitter(config.splitter_name, config.splitter_config)

        node_data = NodeData(
            inputs={
                "text_splitter": splitter,
                **config.loader_config,
                **(extra_inputs or {}),
            },
            credential=config.credential,
        )
        options = InvocationOptions(correlation_id=correlation_id, logger=logger)
        loader = get_loader(config.loader_name)
        documents = loader.invoke(node_data, options)
    except Exception as exc:
        logger.error(
            "Loader %s (splitter %s) failed [%s] for store %s file %s: %s",
            config.loader_name,
            config.splitter_name,
            correlation_id,
            store_id,
            file_id,
            exc,
        )
        raise UpstreamProcessingError(
            f"Loader {config.loader_name!r} failed: {exc}",
            operation=OPERATION,
            store_id=store_id,
            file_id=file_id,
        ) from exc

    logger.info(
        "Loader %s produced %d documents [%s]", config.loader_name, len(documents), correlation_id
    )
    return documents
