"""Loader and splitter registry."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from langchain_text_splitters import (
    CharacterTextSplitter,
    MarkdownTextSplitter,
    RecursiveCharacterTextSplitter,
)
from pydantic.alias_generators import to_snake

from docstore.loaders.text import JsonLoader, MarkdownLoader, PlainTextLoader

if TYPE_CHECKING:
    from langchain_text_splitters import TextSplitter

    from docstore.loaders.base import DocumentLoader

LOADERS: dict[
    str,
    type[PlainTextLoader] | type[MarkdownLoader] | type[JsonLoader],
] = {
    "plainText": PlainTextLoader,
    "markdown": MarkdownLoader,
    "json": JsonLoader,
}

SPLITTERS: dict[
    str,
    type[CharacterTextSplitter]
    | type[RecursiveCharacterTextSplitter]
    | type[MarkdownTextSplitter],
] = {
    "characterTextSplitter": CharacterTextSplitter,
    "recursiveCharacterTextSplitter": RecursiveCharacterTextSplitter,
    "markdownTextSplitter": MarkdownTextSplitter,
}


def get_loader(name: str) -> DocumentLoader:
    """Instantiate the loader registered under ``name``.

    Raises ValueError if the name is unknown.
    """
    loader_cls = LOADERS.get(name)
    if loader_cls is None:
        msg = f"Unknown loader: {name!r}. Available: {list(LOADERS)}"
        raise ValueError(msg)
    return loader_cls()


def get_splitter(name: str, config: dict[str, Any]) -> TextSplitter:
    """Instantiate the splitter registered under ``name`` with ``config``.

    Config keys may be camelCase (``chunkSize``) or snake_case
    (``chunk_size``). Raises ValueError if the name is unknown.
    """
    splitter_cls = SPLITTERS.get(name)
    if splitter_cls is None:
        msg = f"Unknown splitter: {name!r}. Available: {list(SPLITTERS)}"
        raise ValueError(msg)
    kwargs = {to_snake(key): value for key, value in config.items()}
    return splitter_cls(**kwargs)


def list_loaders() -> list[str]:
    """Return the registered loader names."""
    return list(LOADERS.keys())


def list_splitters() -> list[str]:
    """Return the registered splitter names."""
    return list(SPLITTERS.keys())
