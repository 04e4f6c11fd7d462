"""Single-flight refactor session: request, review, then commit or discard.

State machine::

    IDLE -> REQUESTING -> AWAITING_REVIEW -> COMMITTING -> COMMITTED
                 |               |               |
                 v               v               v
               FAILED        DISCARDED      ROLLING_BACK -> FAILED

COMMITTED, FAILED and DISCARDED are terminal: reaching one releases the
lock at once, so ``state`` reads IDLE again and the finished session is
kept as ``last_session``.

The busy check and the move to REQUESTING happen with no ``await`` in
between, so two ``start`` calls on one event loop can never both pass
the guard. Backend replies are matched to the session they answer by
id; a reply for a session that is no longer current is dropped.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from ecorefactor.backend.schemas import RefactoredData, Smell
from ecorefactor.cache.file_cache import FileFingerprintCache
from ecorefactor.cache.fingerprint import fingerprint_file, normalize_path
from ecorefactor.constants import (
    SESSION_ID_HEX_LENGTH,
    TERMINAL_STATES,
    RefactorMode,
    SessionState,
)
from ecorefactor.logger import SessionLogger
from ecorefactor.resilience.errors import (
    BackendComputationError,
    CommitBookkeepingError,
    DiffViewError,
    EcoRefactorError,
    ExternalModificationConflict,
    FilesystemError,
    InvalidSessionState,
    ServerDown,
    SessionBusy,
    SmellNotFound,
    StaleTarget,
    WorkspaceNotConfigured,
)
from ecorefactor.services.diff_tracker import DiffSessionTracker
from ecorefactor.services.events import SessionCallback, SessionEvent
from ecorefactor.services.filesystem import LocalFileSystem, StagedCommit
from ecorefactor.services.metrics_service import MetricsService
from ecorefactor.services.server_status import ServerStatusMonitor

logger = logging.getLogger(__name__)

_ALLOWED: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.REQUESTING}),
    SessionState.REQUESTING: frozenset({
        SessionState.AWAITING_REVIEW,
        SessionState.FAILED,
    }),
    SessionState.AWAITING_REVIEW: frozenset({
        SessionState.COMMITTING,
        SessionState.DISCARDED,
        SessionState.FAILED,
    }),
    SessionState.COMMITTING: frozenset({
        SessionState.COMMITTED,
        SessionState.ROLLING_BACK,
        SessionState.FAILED,
    }),
    SessionState.ROLLING_BACK: frozenset({SessionState.FAILED}),
}


class RefactorBackend(Protocol):
    """The slice of BackendClient the controller needs."""

    async def refactor(
        self,
        smell: Smell,
        source_dir: str,
        mode: RefactorMode = RefactorMode.SINGLE,
    ) -> RefactoredData: ...


@dataclass
class RefactorSession:
    session_id: str
    mode: RefactorMode
    target_smell: Smell
    target_path: str
    target_fingerprint: str
    state: SessionState = SessionState.IDLE
    result: RefactoredData | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    error: str | None = None

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def touched_paths(self) -> list[str]:
        """Normalised paths this session reads or would write."""
        paths = [self.target_path]
        if self.result is not None:
            for changed in self.result.all_files:
                key = normalize_path(changed.original)
                if key not in paths:
                    paths.append(key)
        return paths

    def touches(self, path: str) -> bool:
        return normalize_path(path) in self.touched_paths


class RefactorSessionController:
    """Owns at most one non-terminal RefactorSession per workspace."""

    def __init__(
        self,
        *,
        cache: FileFingerprintCache,
        client: RefactorBackend,
        tracker: DiffSessionTracker,
        monitor: ServerStatusMonitor,
        metrics: MetricsService,
        workspace_root: Callable[[], str | None],
        fs: LocalFileSystem | None = None,
        session_logger: SessionLogger | None = None,
        on_transition: SessionCallback | None = None,
    ) -> None:
        self._cache = cache
        self._client = client
        self._tracker = tracker
        self._monitor = monitor
        self._metrics = metrics
        self._workspace_root = workspace_root
        self._fs = fs or LocalFileSystem()
        self._session_logger = session_logger
        self._on_transition = on_transition
        self._active: RefactorSession | None = None
        self._last: RefactorSession | None = None
        # Set while discard() awaits cleanup, so commit() cannot interleave
        self._closing: str | None = None

    @property
    def state(self) -> SessionState:
        return self._active.state if self._active else SessionState.IDLE

    @property
    def active_session(self) -> RefactorSession | None:
        return self._active

    @property
    def last_session(self) -> RefactorSession | None:
        return self._last

    @property
    def current_session(self) -> RefactorSession | None:
        """The active session, else the last finished one."""
        return self._active or self._last

    def forget(self, path: str) -> bool:
        """Drop the last finished session if it touches ``path``.

        Called once the file has been re-detected or deleted, so its
        status follows the cache again.
        """
        if self._last is None or not self._last.touches(path):
            return False
        logger.debug(
            "event=last_session_forgotten session=%s path=%s",
            self._last.session_id,
            path,
        )
        self._last = None
        return True

    # ── Request ───────────────────────────────────────────

    async def start(
        self,
        smell_id: str,
        mode: RefactorMode = RefactorMode.SINGLE,
    ) -> RefactorSession:
        """Request a refactor for ``smell_id`` and open its diffs.

        Guard failures raise before anything changes. A backend failure
        leaves the session FAILED and re-raises. If the session was
        cancelled while the request was in flight, the reply is dropped
        and the cancelled session is returned.
        """
        if self._active is not None:
            raise SessionBusy(
                f"session {self._active.session_id} is {self._active.state}"
            )
        if self._monitor.is_down:
            raise ServerDown("backend reported down by health monitor")
        root = self._workspace_root()
        if not root:
            raise WorkspaceNotConfigured("no workspace root configured")
        hit = self._cache.index.by_id(smell_id)
        if hit is None:
            raise SmellNotFound(f"smell {smell_id} is not in the index")
        path, smell = hit
        record = self._cache.get(path)
        if record is None:
            raise SmellNotFound(f"no cache record for {path}")
        if not record.is_fresh:
            raise StaleTarget(f"{path} is outdated")
        try:
            live = fingerprint_file(path)
        except OSError as exc:
            raise FilesystemError(
                f"cannot read {path}: {exc.strerror or exc}"
            ) from exc
        if live != record.fingerprint:
            raise StaleTarget(f"{path} changed since it was analysed")

        session = RefactorSession(
            session_id=uuid.uuid4().hex[:SESSION_ID_HEX_LENGTH],
            mode=mode,
            target_smell=smell,
            target_path=path,
            target_fingerprint=live,
        )
        self._active = session
        self._transition(session, SessionState.REQUESTING)

        try:
            data = await self._client.refactor(smell, root, mode)
        except EcoRefactorError as exc:
            if await self._on_refactor_failure(session.session_id, exc):
                raise
            return session
        await self._on_refactor_response(session.session_id, data)
        return session

    async def _on_refactor_response(
        self, session_id: str, data: RefactoredData
    ) -> bool:
        """Apply a backend reply. False if it answers a stale session."""
        session = self._current(session_id)
        if session is None:
            self._drop_stale(session_id, data.temp_dir)
            return False
        session.result = data
        try:
            await self._tracker.register_temp_root(session_id, data.temp_dir)
            for changed in data.all_files:
                await self._tracker.open(
                    session_id, changed.original, changed.refactored
                )
        except Exception as exc:
            session.error = f"{type(exc).__name__}: {exc}"
            if self._current(session_id) is session:
                self._transition(session, SessionState.FAILED)
            await self._close_quietly(session_id)
            if isinstance(exc, EcoRefactorError):
                raise
            raise DiffViewError(
                f"opening diff views failed: {session.error}"
            ) from exc
        if self._current(session_id) is not session:
            # Cancelled while the diff views were opening
            await self._tracker.close_session(session_id)
            return False
        self._transition(session, SessionState.AWAITING_REVIEW)
        return True

    async def _on_refactor_failure(
        self, session_id: str, exc: EcoRefactorError
    ) -> bool:
        """Fail the session for a backend error. False if it was stale."""
        temp_dir = getattr(exc, "temp_dir", None)
        if isinstance(exc, BackendComputationError) and temp_dir:
            self._remove_quietly(temp_dir)
        session = self._current(session_id)
        if session is None:
            logger.debug(
                "event=stale_failure_dropped session=%s error=%s",
                session_id,
                exc,
            )
            return False
        session.error = str(exc)
        self._transition(session, SessionState.FAILED)
        return True

    def cancel(self) -> bool:
        """Abandon an in-flight request. Its reply will be ignored."""
        session = self._active
        if session is None or session.state is not SessionState.REQUESTING:
            return False
        session.error = "cancelled"
        self._transition(session, SessionState.FAILED)
        return True

    # ── Review outcome ────────────────────────────────────

    async def discard(self) -> RefactorSession:
        """Reject the proposed refactor. Cached smells stay as they are."""
        session = self._require_review()
        self._closing = session.session_id
        try:
            await self._tracker.close_session(session.session_id)
        finally:
            self._closing = None
        self._transition(session, SessionState.DISCARDED)
        return session

    async def commit(self) -> RefactorSession:
        """Apply the reviewed refactor to every changed file, atomically.

        Raises ExternalModificationConflict if the target changed during
        review, FilesystemError if the files could not be replaced. In
        both cases the workspace is left at its pre-commit contents.
        CommitBookkeepingError means the files were applied and the
        session is COMMITTED, but the cache or metrics update failed.
        """
        session = self._require_review()
        data = session.result
        assert data is not None
        sid = session.session_id
        t0 = time.monotonic()

        try:
            live: str | None = fingerprint_file(session.target_path)
        except OSError:
            live = None
        if live != session.target_fingerprint:
            session.error = "target modified during review"
            self._transition(session, SessionState.FAILED)
            await self._close_quietly(sid)
            raise ExternalModificationConflict(
                f"{session.target_path} changed during review"
            )

        self._transition(session, SessionState.COMMITTING)
        staged = StagedCommit(self._fs, sid)
        try:
            staged.prepare([(f.original, f.refactored) for f in data.all_files])
        except FilesystemError as exc:
            session.error = str(exc)
            self._transition(session, SessionState.FAILED)
            await self._close_quietly(sid)
            raise

        try:
            staged.stage()
            applied = staged.swap()
        except FilesystemError as exc:
            self._transition(session, SessionState.ROLLING_BACK)
            unrestored = staged.rollback()
            session.error = str(exc)
            self._transition(session, SessionState.FAILED)
            await self._close_quietly(sid)
            if unrestored:
                raise FilesystemError(
                    f"{exc}; could not restore {', '.join(unrestored)}"
                ) from exc
            raise

        # The files are replaced from here on, so the session always
        # ends COMMITTED even if recording the outcome fails.
        failure: Exception | None = None
        try:
            for path in applied:
                await self._cache.mark_outdated(path)
            if data.energy_saved is not None:
                await self._metrics.add_savings(
                    session.target_path,
                    data.energy_saved,
                    session.target_smell.rule,
                )
        except Exception as exc:
            failure = exc
            session.error = f"{type(exc).__name__}: {exc}"
            logger.error(
                "event=commit_bookkeeping_failed session=%s error=%s",
                sid,
                session.error,
            )
        await self._close_quietly(sid)
        self._transition(session, SessionState.COMMITTED)
        if self._session_logger:
            self._session_logger.log_commit(
                sid,
                applied,
                data.energy_saved,
                (time.monotonic() - t0) * 1000,
            )
        if failure is not None:
            raise CommitBookkeepingError(
                f"applied {', '.join(applied)} but bookkeeping failed: "
                f"{session.error}"
            ) from failure
        return session

    async def shutdown(self) -> None:
        """Cancel or discard whatever is in flight (on deactivation)."""
        if self.cancel():
            return
        if (
            self._active is not None
            and self._active.state is SessionState.AWAITING_REVIEW
        ):
            await self.discard()

    # ── Internals ─────────────────────────────────────────

    def _current(self, session_id: str) -> RefactorSession | None:
        session = self._active
        if session is None or session.session_id != session_id:
            return None
        return session

    def _require_review(self) -> RefactorSession:
        session = self._active
        if (
            session is None
            or session.state is not SessionState.AWAITING_REVIEW
            or self._closing == session.session_id
        ):
            raise InvalidSessionState(f"state is {self.state}")
        return session

    def _transition(self, session: RefactorSession, to: SessionState) -> None:
        previous = session.state
        if to not in _ALLOWED.get(previous, frozenset()):
            raise InvalidSessionState(
                f"illegal transition {previous} -> {to}"
            )
        session.state = to
        if to in TERMINAL_STATES:
            self._active = None
            self._last = session
        logger.info(
            "event=session_transition session=%s from=%s to=%s",
            session.session_id,
            previous,
            to,
        )
        if self._session_logger:
            self._session_logger.log_transition(
                session.session_id, previous, to, session.target_path
            )
        if self._on_transition:
            try:
                self._on_transition(
                    SessionEvent(
                        session_id=session.session_id,
                        previous=previous,
                        current=to,
                        target_path=session.target_path,
                        message=session.error or "",
                    )
                )
            except Exception:
                logger.warning(
                    "event=transition_callback_error session=%s",
                    session.session_id,
                )

    def _drop_stale(self, session_id: str, temp_dir: str | None) -> None:
        logger.debug(
            "event=stale_response_dropped session=%s current=%s",
            session_id,
            self._active.session_id if self._active else None,
        )
        if temp_dir:
            self._remove_quietly(temp_dir)

    async def _close_quietly(self, session_id: str) -> None:
        try:
            await self._tracker.close_session(session_id)
        except Exception as exc:
            logger.warning(
                "event=session_close_failed session=%s error=%s",
                session_id,
                exc,
            )

    def _remove_quietly(self, path: str) -> None:
        try:
            self._fs.remove_tree(path)
        except OSError as exc:
            logger.warning(
                "event=temp_cleanup_failed path=%s error=%s", path, exc
            )
