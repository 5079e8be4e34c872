"""Storage folder resolution and file byte I/O for document stores."""

from __future__ import annotations

import logging
import shutil
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

DATASOURCE_DIR = "datasource"


def safe_file_name(name: str) -> str:
    """Validate an uploaded file name and return it stripped.

    Raises ValueError for empty names, names containing path separators, and
    the special names ``.`` and ``..``.
    """
    candidate = name.strip()
    if not candidate or candidate in {".", ".."}:
        raise ValueError(f"Invalid file name: {name!r}")
    if "/" in candidate or "\\" in candidate or "\x00" in candidate:
        raise ValueError(f"Invalid file name: {name!r}")
    return candidate


@dataclass
class StorageManager:
    """Maps store sub-folders onto the filesystem under ``storage_dir``."""

    storage_dir: Path

    @property
    def datasource_root(self) -> Path:
        return self.storage_dir / DATASOURCE_DIR

    def store_dir(self, sub_folder: str) -> Path:
        """Return the folder for a store's files, without checking existence."""
        target = (self.datasource_root / sub_folder).resolve()
        if not target.is_relative_to(self.datasource_root.resolve()):
            raise ValueError(f"Invalid store folder: {sub_folder!r}")
        return target

    def folder_exists(self, sub_folder: str) -> bool:
        return self.store_dir(sub_folder).is_dir()

    def create_store_dir(self, sub_folder: str) -> Path:
        """Create the folder for a new store (idempotent)."""
        folder = self.store_dir(sub_folder)
        folder.mkdir(parents=True, exist_ok=True)
        logger.info("Created storage folder %s", folder)
        return folder

    def remove_store_dir(self, sub_folder: str) -> None:
        """Remove a store's folder and everything in it, if present."""
        folder = self.store_dir(sub_folder)
        if folder.is_dir():
            shutil.rmtree(folder)
            logger.info("Removed storage folder %s", folder)

    def write_file(self, sub_folder: str, name: str, content: bytes) -> Path:
        """Write file bytes into an existing store folder.

        An existing file with the same name is overwritten.
        """
        file_path = self.store_dir(sub_folder) / safe_file_name(name)
        file_path.write_bytes(content)
        return file_path

    def begin_writes(self, sub_folder: str) -> FileWriteBatch:
        """Start a batch of writes into a store folder that can be undone."""
        return FileWriteBatch(storage=self, sub_folder=sub_folder)

    def remove_file(self, file_path: str) -> bool:
        """Remove a stored file. Returns False if it was already gone."""
        target = (self.storage_dir / file_path).resolve()
        if not target.is_relative_to(self.datasource_root.resolve()):
            raise ValueError(f"Refusing to remove file outside storage: {file_path!r}")
        try:
            target.unlink()
        except FileNotFoundError:
            logger.warning("Stored file already missing: %s", target)
            return False
        return True


@dataclass
class FileWriteBatch:
    """File writes into one store folder, undoable until kept.

    A file about to be overwritten is first moved aside under a hidden name.
    ``discard`` removes everything the batch wrote and moves those files back;
    ``keep`` deletes the moved-aside copies.
    """

    storage: StorageManager
    sub_folder: str
    written: list[Path] = field(default_factory=list)
    moved_aside: dict[Path, Path] = field(default_factory=dict)

    def write(self, name: str, content: bytes) -> Path:
        target = self.storage.store_dir(self.sub_folder) / safe_file_name(name)
        if target.exists() and target not in self.moved_aside:
            aside = target.with_name(f".{uuid.uuid4().hex}.replaced")
            target.replace(aside)
            self.moved_aside[target] = aside
        self.written.append(target)
        return self.storage.write_file(self.sub_folder, name, content)

    def discard(self) -> None:
        for path in self.written:
            path.unlink(missing_ok=True)
        for target, aside in self.moved_aside.items():
            aside.replace(target)
        if self.written:
            logger.info("Undid %d file write(s) in %s", len(self.written), self.sub_folder)
        self.written.clear()
        self.moved_aside.clear()

    def keep(self) -> None:
        for aside in self.moved_aside.values():
            try:
                aside.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not remove replaced file %s: %s", aside, exc)
        self.written.clear()
        self.moved_aside.clear()
