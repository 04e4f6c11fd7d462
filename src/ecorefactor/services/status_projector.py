"""Pure projection of cache and session state onto UI file statuses.

Nothing here mutates its inputs; callers recompute on demand.

Precedence, highest first:

1. a session touching the file (REQUESTING -> QUEUED, review/commit/
   rollback -> AWAITING_REVIEW, FAILED -> FAILED until the target is
   re-analysed or edited)
2. detection in flight -> QUEUED
3. detection failed -> FAILED
4. no record while the server is down -> SERVER_DOWN
5. no record -> UNANALYZED
6. record OUTDATED -> OUTDATED
7. record with smells -> HAS_SMELLS, else CLEAN
"""

from __future__ import annotations

from ecorefactor.cache.file_cache import FileFingerprintCache, FileRecord
from ecorefactor.cache.fingerprint import normalize_path
from ecorefactor.constants import (
    STATUS_LABELS,
    FileStatus,
    ServerStatus,
    SessionState,
)
from ecorefactor.services.refactor_session import RefactorSession

_SESSION_STATUS: dict[SessionState, FileStatus] = {
    SessionState.REQUESTING: FileStatus.QUEUED,
    SessionState.AWAITING_REVIEW: FileStatus.AWAITING_REVIEW,
    SessionState.COMMITTING: FileStatus.AWAITING_REVIEW,
    SessionState.ROLLING_BACK: FileStatus.AWAITING_REVIEW,
    SessionState.FAILED: FileStatus.FAILED,
}


def project(
    record: FileRecord | None,
    session: RefactorSession | None = None,
    *,
    path: str | None = None,
    server_status: ServerStatus = ServerStatus.UNKNOWN,
    detecting: bool = False,
    detection_failed: bool = False,
) -> FileStatus:
    """Derive the status of one file.

    ``path`` is required when ``record`` is None and a session may
    touch the file; otherwise the record's own path is used.
    """
    key = normalize_path(path) if path else (record.path if record else None)
    if session is not None and key is not None and session.touches(key):
        mapped = _SESSION_STATUS.get(session.state)
        if mapped is FileStatus.FAILED and _superseded(record, session):
            mapped = None
        if mapped is not None:
            return mapped
    if detecting:
        return FileStatus.QUEUED
    if detection_failed:
        return FileStatus.FAILED
    if record is None:
        if server_status is ServerStatus.DOWN:
            return FileStatus.SERVER_DOWN
        return FileStatus.UNANALYZED
    if not record.is_fresh:
        return FileStatus.OUTDATED
    return FileStatus.HAS_SMELLS if record.smells else FileStatus.CLEAN


def _superseded(record: FileRecord | None, session: RefactorSession) -> bool:
    # A failure only describes the file contents it was requested against
    if record is None or record.path != session.target_path:
        return False
    return (
        not record.is_fresh
        or record.fingerprint != session.target_fingerprint
    )


def project_smell(
    smell_id: str,
    cache: FileFingerprintCache,
    session: RefactorSession | None = None,
    *,
    server_status: ServerStatus = ServerStatus.UNKNOWN,
) -> FileStatus | None:
    """Status of the file owning ``smell_id``; None if the id is gone."""
    hit = cache.index.by_id(smell_id)
    if hit is None:
        return None
    path, _ = hit
    return project(
        cache.get(path),
        session,
        path=path,
        server_status=server_status,
    )


def status_label(status: FileStatus) -> str:
    return STATUS_LABELS[status]
