"""Secondary lookup from smell id to (owning path, Smell).

Never the source of truth: every entry is derived from the FileRecords
held by FileFingerprintCache, and ``rebuild`` can recreate the whole
index from them at any time.
"""

from __future__ import annotations

from collections.abc import Iterable

from ecorefactor.backend.schemas import Smell


class SmellIndex:
    def __init__(self) -> None:
        self._by_id: dict[str, tuple[str, Smell]] = {}
        self._ids_by_path: dict[str, set[str]] = {}

    def by_id(self, smell_id: str) -> tuple[str, Smell] | None:
        """Resolve an id captured by the UI.

        ``None`` means the smell is no longer present (fixed, moved, or
        its file was wiped). Callers treat that as a normal outcome.
        """
        return self._by_id.get(smell_id)

    def reindex(self, path: str, smells: Iterable[Smell]) -> None:
        """Replace the entries for ``path`` with ``smells``.

        Ids that persist across a re-detection keep resolving; ids that
        disappeared from the file are dropped.
        """
        new_ids: set[str] = set()
        for smell in smells:
            self._by_id[smell.id] = (path, smell)
            new_ids.add(smell.id)
        for stale in self._ids_by_path.get(path, set()) - new_ids:
            owner = self._by_id.get(stale)
            if owner is not None and owner[0] == path:
                del self._by_id[stale]
        if new_ids:
            self._ids_by_path[path] = new_ids
        else:
            self._ids_by_path.pop(path, None)

    def drop(self, path: str) -> None:
        self.reindex(path, ())

    def clear(self) -> None:
        self._by_id.clear()
        self._ids_by_path.clear()

    def rebuild(self, entries: Iterable[tuple[str, Iterable[Smell]]]) -> None:
        """Recreate the index from (path, smells) pairs."""
        self.clear()
        for path, smells in entries:
            self.reindex(path, smells)

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, smell_id: object) -> bool:
        return smell_id in self._by_id
