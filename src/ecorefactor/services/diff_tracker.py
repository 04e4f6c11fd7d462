"""Lifecycle tracking for diff views and temp artifacts of a session.

Records are persisted before the editor is asked to open anything, so
a crash between "open" and "close" still leaves a trail that
``sweep_orphans`` can clean up on the next activation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ecorefactor.constants import DIFF_SESSIONS_KEY, DIFF_TITLE_TEMPLATE
from ecorefactor.editor.protocols import EditorPlatform
from ecorefactor.repositories.protocols import WorkspaceStore
from ecorefactor.services.filesystem import LocalFileSystem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiffPairRecord:
    original_uri: str
    refactored_uri: str
    session_id: str


@dataclass
class _SessionArtifacts:
    pairs: list[DiffPairRecord] = field(
        default_factory=lambda: list[DiffPairRecord]()
    )
    temp_roots: list[str] = field(default_factory=lambda: list[str]())

    def to_dict(self) -> dict[str, Any]:
        return {
            "pairs": [[p.original_uri, p.refactored_uri] for p in self.pairs],
            "temp_roots": list(self.temp_roots),
        }

    @classmethod
    def from_dict(cls, session_id: str, data: dict[str, Any]) -> _SessionArtifacts:
        return cls(
            pairs=[
                DiffPairRecord(original, refactored, session_id)
                for original, refactored in data.get("pairs", [])
            ],
            temp_roots=list(data.get("temp_roots", [])),
        )


@dataclass(frozen=True)
class CloseReport:
    """Outcome of closing one session's artifacts (best effort)."""

    session_id: str
    views_closed: int = 0
    temp_roots_removed: int = 0
    errors: tuple[str, ...] = ()


class DiffSessionTracker:
    def __init__(
        self,
        editor: EditorPlatform,
        store: WorkspaceStore,
        fs: LocalFileSystem | None = None,
    ) -> None:
        self._editor = editor
        self._store = store
        self._fs = fs or LocalFileSystem()
        self._sessions: dict[str, _SessionArtifacts] = {}

    async def open(
        self,
        session_id: str,
        original_uri: str,
        refactored_uri: str,
        title: str | None = None,
    ) -> DiffPairRecord:
        """Record the pair, then open its diff view."""
        record = DiffPairRecord(original_uri, refactored_uri, session_id)
        self._sessions.setdefault(session_id, _SessionArtifacts()).pairs.append(
            record
        )
        await self._persist()
        await self._editor.open_diff(
            original_uri,
            refactored_uri,
            title or DIFF_TITLE_TEMPLATE.format(name=Path(original_uri).name),
        )
        return record

    async def register_temp_root(self, session_id: str, path: str) -> None:
        artifacts = self._sessions.setdefault(session_id, _SessionArtifacts())
        if path not in artifacts.temp_roots:
            artifacts.temp_roots.append(path)
            await self._persist()

    async def close_session(self, session_id: str) -> CloseReport:
        """Close every tracked view and delete temp roots for a session.

        Views that are already closed and temp roots that are already
        gone are not errors. Any other failure is logged and reported,
        and the records are forgotten regardless.
        """
        artifacts = self._sessions.pop(session_id, None)
        if artifacts is None:
            return CloseReport(session_id=session_id)
        report = await self._close_artifacts(session_id, artifacts)
        await self._persist()
        return report

    async def sweep_orphans(self) -> int:
        """Clean up sessions persisted by a previous run.

        Sessions known to this process are left alone. Returns the
        number of orphaned sessions swept.
        """
        persisted: dict[str, Any] = await self._store.get(DIFF_SESSIONS_KEY, {})
        orphans = {
            sid: _SessionArtifacts.from_dict(sid, data)
            for sid, data in persisted.items()
            if sid not in self._sessions
        }
        for sid, artifacts in orphans.items():
            report = await self._close_artifacts(sid, artifacts)
            logger.info(
                "event=orphan_swept session=%s views=%d temp_roots=%d errors=%d",
                sid,
                report.views_closed,
                report.temp_roots_removed,
                len(report.errors),
            )
        if orphans:
            await self._persist()
        return len(orphans)

    @property
    def session_ids(self) -> list[str]:
        return list(self._sessions)

    async def _close_artifacts(
        self, session_id: str, artifacts: _SessionArtifacts
    ) -> CloseReport:
        errors: list[str] = []
        closed = 0
        for pair in artifacts.pairs:
            try:
                if await self._editor.close_diff(
                    pair.original_uri, pair.refactored_uri
                ):
                    closed += 1
            except Exception as exc:
                errors.append(f"close {pair.refactored_uri}: {exc}")
                logger.warning(
                    "event=diff_close_failed session=%s uri=%s error=%s",
                    session_id,
                    pair.refactored_uri,
                    exc,
                )
        removed = 0
        for root in artifacts.temp_roots:
            try:
                if self._fs.remove_tree(root):
                    removed += 1
            except OSError as exc:
                errors.append(f"remove {root}: {exc}")
                logger.warning(
                    "event=temp_cleanup_failed session=%s path=%s error=%s",
                    session_id,
                    root,
                    exc,
                )
        return CloseReport(
            session_id=session_id,
            views_closed=closed,
            temp_roots_removed=removed,
            errors=tuple(errors),
        )

    async def _persist(self) -> None:
        await self._store.set(
            DIFF_SESSIONS_KEY,
            {sid: a.to_dict() for sid, a in self._sessions.items()},
        )
