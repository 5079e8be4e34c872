"""Base protocol and data classes for document loaders."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    import logging

    from langchain_core.documents import Document


@dataclass
class NodeData:
    """Inputs handed to a loader: its configuration plus an optional splitter."""

    inputs: dict[str, Any] = field(default_factory=dict)
    credential: str | None = None
    node_id: str = "loader_0"


@dataclass
class InvocationOptions:
    """Context of a single loader invocation."""

    correlation_id: str
    logger: logging.Logger


@runtime_checkable
class DocumentLoader(Protocol):
    """Protocol for named document loader implementations."""

    name: str

    def invoke(self, node_data: NodeData, options: InvocationOptions) -> list[Document]:
        """Load documents, splitting them with ``inputs["text_splitter"]`` if set."""
        ...
