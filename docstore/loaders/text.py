"""Built-in loaders for text-based files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from langchain_core.documents import Document

if TYPE_CHECKING:
    from langchain_text_splitters import TextSplitter

    from docstore.loaders.base import InvocationOptions, NodeData


def _read_source(inputs: dict[str, Any]) -> tuple[str, str]:
    """Return (text, source) from either a ``text`` or a ``file_path`` input."""
    text = inputs.get("text")
    if text is not None:
        return str(text), "text"
    file_path = inputs.get("file_path")
    if not file_path:
        raise ValueError("Loader requires a 'file_path' or 'text' input")
    encoding = inputs.get("encoding", "utf-8")
    return Path(file_path).read_text(encoding=encoding), str(file_path)


def _split(documents: list[Document], inputs: dict[str, Any]) -> list[Document]:
    splitter: TextSplitter | None = inputs.get("text_splitter")
    if splitter is None:
        return documents
    return splitter.split_documents(documents)


class PlainTextLoader:
    """Loads a whole text file as a single document."""

    name = "plainText"
    source_type = "text"

    def invoke(self, node_data: NodeData, options: InvocationOptions) -> list[Document]:
        inputs = node_data.inputs
        text, source = _read_source(inputs)
        metadata: dict[str, Any] = {"source": source, "type": self.source_type}
        metadata.update(inputs.get("metadata") or {})
        documents = _split([Document(page_content=text, metadata=metadata)], inputs)
        options.logger.debug(
            "[%s] %s loaded %d documents from %s",
            options.correlation_id,
            self.name,
            len(documents),
            source,
        )
        return documents


class MarkdownLoader(PlainTextLoader):
    name = "markdown"
    source_type = "markdown"


class JsonLoader:
    """Loads a JSON file, one document per element when the payload is a list.

    ``pointer`` selects a nested value by a dotted key path before loading.
    """

    name = "json"

    def invoke(self, node_data: NodeData, options: InvocationOptions) -> list[Document]:
        inputs = node_data.inputs
        raw, source = _read_source(inputs)
        payload: Any = json.loads(raw)
        pointer = inputs.get("pointer")
        if pointer:
            for key in str(pointer).split("."):
                payload = payload[int(key)] if isinstance(payload, list) else payload[key]

        items = payload if isinstance(payload, list) else [payload]
        documents: list[Document] = []
        for index, item in enumerate(items):
            content = item if isinstance(item, str) else json.dumps(item, ensure_ascii=False)
            metadata: dict[str, Any] = {"source": source, "type": "json", "index": index}
            metadata.update(inputs.get("metadata") or {})
            documents.append(Document(page_content=content, metadata=metadata))

        documents = _split(documents, inputs)
        options.logger.debug(
            "[%s] json loaded %d documents from %s",
            options.correlation_id,
            len(documents),
            source,
        )
        return documents
