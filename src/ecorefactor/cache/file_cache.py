"""Per-file smell cache keyed by content fingerprint.

Records live in memory for synchronous reads (the refactor controller
checks freshness without yielding to the event loop) and are written
through to the WorkspaceStore on every mutation so they survive a
restart.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from ecorefactor.backend.schemas import Smell
from ecorefactor.cache.fingerprint import normalize_path
from ecorefactor.cache.smell_index import SmellIndex
from ecorefactor.constants import SMELL_CACHE_KEY, Freshness
from ecorefactor.repositories.protocols import WorkspaceStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileRecord:
    """Smells known for one file and the fingerprint they were computed at."""

    path: str
    fingerprint: str
    smells: tuple[Smell, ...]
    freshness: Freshness = Freshness.FRESH

    @property
    def is_fresh(self) -> bool:
        return self.freshness is Freshness.FRESH

    def to_dict(self) -> dict[str, Any]:
        return {
            "fingerprint": self.fingerprint,
            "freshness": str(self.freshness),
            "smells": [
                s.model_dump(by_alias=True, mode="json") for s in self.smells
            ],
        }

    @classmethod
    def from_dict(cls, path: str, data: dict[str, Any]) -> FileRecord:
        return cls(
            path=path,
            fingerprint=data["fingerprint"],
            smells=tuple(Smell.model_validate(s) for s in data["smells"]),
            freshness=Freshness(data.get("freshness", Freshness.FRESH)),
        )


class FileFingerprintCache:
    """Ground truth for "which smells are known for file X"."""

    def __init__(
        self,
        store: WorkspaceStore,
        index: SmellIndex | None = None,
    ) -> None:
        self._store = store
        self.index = index if index is not None else SmellIndex()
        self._records: dict[str, FileRecord] = {}

    async def load(self) -> int:
        """Hydrate from the store. Returns the number of records loaded.

        Entries that no longer decode (e.g. a rule kind dropped from the
        backend) are discarded so the file is simply re-detected.
        """
        raw: dict[str, Any] = await self._store.get(SMELL_CACHE_KEY, {})
        self._records.clear()
        dropped = 0
        for path, data in raw.items():
            try:
                self._records[path] = FileRecord.from_dict(path, data)
            except (KeyError, ValueError, ValidationError) as exc:
                dropped += 1
                logger.warning(
                    "event=cache_entry_dropped path=%s error=%s", path, exc
                )
        self.index.rebuild(
            (path, record.smells) for path, record in self._records.items()
        )
        if dropped:
            await self._persist()
        logger.info(
            "event=cache_loaded records=%d dropped=%d",
            len(self._records),
            dropped,
        )
        return len(self._records)

    def get(self, path: str) -> FileRecord | None:
        return self._records.get(normalize_path(path))

    async def upsert(
        self,
        path: str,
        fingerprint: str,
        smells: Iterable[Smell],
    ) -> FileRecord:
        """Replace the record for ``path`` wholesale and mark it FRESH."""
        key = normalize_path(path)
        record = FileRecord(
            path=key,
            fingerprint=fingerprint,
            smells=tuple(smells),
            freshness=Freshness.FRESH,
        )
        self._records[key] = record
        self.index.reindex(key, record.smells)
        await self._persist()
        return record

    async def check_freshness(
        self, path: str, live_fingerprint: str
    ) -> Freshness:
        """Compare a live fingerprint with the stored one.

        A mismatch marks the record OUTDATED but keeps its smells
        readable. A match (including content restored to what was last
        analysed) reports FRESH.
        """
        key = normalize_path(path)
        record = self._records.get(key)
        if record is None:
            return Freshness.UNKNOWN
        wanted = (
            Freshness.FRESH
            if record.fingerprint == live_fingerprint
            else Freshness.OUTDATED
        )
        if record.freshness is not wanted:
            self._records[key] = dataclasses.replace(record, freshness=wanted)
            await self._persist()
            logger.info("event=freshness_changed path=%s to=%s", key, wanted)
        return wanted

    async def mark_outdated(self, path: str) -> bool:
        """Force re-detection before the next refactor on ``path``."""
        key = normalize_path(path)
        record = self._records.get(key)
        if record is None:
            return False
        if record.freshness is not Freshness.OUTDATED:
            self._records[key] = dataclasses.replace(
                record, freshness=Freshness.OUTDATED
            )
            await self._persist()
        return True

    async def clear(self, path: str) -> bool:
        key = normalize_path(path)
        if self._records.pop(key, None) is None:
            return False
        self.index.drop(key)
        await self._persist()
        return True

    async def clear_all(self) -> None:
        self._records.clear()
        self.index.clear()
        await self._store.delete(SMELL_CACHE_KEY)
        logger.info("event=cache_wiped")

    @property
    def paths(self) -> list[str]:
        return sorted(self._records)

    def __len__(self) -> int:
        return len(self._records)

    async def _persist(self) -> None:
        await self._store.set(
            SMELL_CACHE_KEY,
            {path: rec.to_dict() for path, rec in self._records.items()},
        )
