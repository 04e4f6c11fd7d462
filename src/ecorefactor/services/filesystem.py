"""Filesystem collaborator and the staged-then-swap commit.

Applying a refactor touches several files, and a failure halfway must
not leave the workspace half-refactored. StagedCommit therefore:

1. reads every refactored file and every original into memory
   (a read failure aborts before anything is written);
2. writes each refactored buffer to a hidden sibling of its original;
3. renames each sibling over its original (``os.replace``);
4. on a failed rename, restores already-swapped originals from the
   in-memory backups.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from ecorefactor.constants import STAGED_SUFFIX
from ecorefactor.resilience.errors import FilesystemError

logger = logging.getLogger(__name__)


class LocalFileSystem:
    """Thin wrapper over the OS so tests can inject failures."""

    def read_bytes(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def write_bytes(self, path: str, data: bytes) -> None:
        Path(path).write_bytes(data)

    def replace(self, source: str, target: str) -> None:
        os.replace(source, target)

    def remove_file(self, path: str) -> bool:
        try:
            Path(path).unlink()
        except FileNotFoundError:
            return False
        return True

    def remove_tree(self, path: str) -> bool:
        """Recursively delete ``path``. False if it was already gone."""
        target = Path(path)
        if not target.exists():
            return False
        if target.is_dir():
            shutil.rmtree(target)
        else:
            target.unlink()
        return True


def staged_name(original: str, tag: str) -> str:
    p = Path(original)
    return str(p.with_name(f".{p.name}.{tag}{STAGED_SUFFIX}"))


@dataclass
class _Replacement:
    original: str
    refactored: str
    new_content: bytes = b""
    backup: bytes = b""
    staged: str = ""


@dataclass
class StagedCommit:
    """One atomic multi-file replacement, tagged with the session id."""

    fs: LocalFileSystem
    tag: str
    _items: list[_Replacement] = field(
        default_factory=lambda: list[_Replacement]()
    )
    _swapped: list[_Replacement] = field(
        default_factory=lambda: list[_Replacement]()
    )

    def prepare(self, pairs: list[tuple[str, str]]) -> None:
        """Buffer every (original, refactored) pair in memory."""
        items: list[_Replacement] = []
        for original, refactored in pairs:
            try:
                items.append(
                    _Replacement(
                        original=original,
                        refactored=refactored,
                        new_content=self.fs.read_bytes(refactored),
                        backup=self.fs.read_bytes(original),
                    )
                )
            except OSError as exc:
                raise FilesystemError(
                    f"cannot read {exc.filename or original}: {exc.strerror or exc}"
                ) from exc
        self._items = items

    def stage(self) -> None:
        """Write every new buffer next to its original."""
        for item in self._items:
            item.staged = staged_name(item.original, self.tag)
            try:
                self.fs.write_bytes(item.staged, item.new_content)
            except OSError as exc:
                self.discard_staged()
                raise FilesystemError(
                    f"cannot stage {item.original}: {exc.strerror or exc}"
                ) from exc

    def swap(self) -> list[str]:
        """Rename staged files into place. Returns the applied paths.

        Raises FilesystemError on the first failed rename; the caller
        must then call rollback().
        """
        for item in self._items:
            try:
                self.fs.replace(item.staged, item.original)
            except OSError as exc:
                raise FilesystemError(
                    f"cannot replace {item.original}: {exc.strerror or exc}"
                ) from exc
            self._swapped.append(item)
        return [item.original for item in self._items]

    def rollback(self) -> list[str]:
        """Restore swapped originals. Returns paths that could not be restored."""
        unrestored: list[str] = []
        for item in reversed(self._swapped):
            try:
                self.fs.write_bytes(item.staged, item.backup)
                self.fs.replace(item.staged, item.original)
            except OSError as exc:
                logger.error(
                    "event=rollback_failed path=%s error=%s",
                    item.original,
                    exc,
                )
                unrestored.append(item.original)
        self._swapped.clear()
        self.discard_staged()
        return unrestored

    def discard_staged(self) -> None:
        for item in self._items:
            if not item.staged:
                continue
            try:
                self.fs.remove_file(item.staged)
            except OSError as exc:
                logger.warning(
                    "event=staged_cleanup_failed path=%s error=%s",
                    item.staged,
                    exc,
                )
