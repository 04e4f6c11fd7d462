"""Extension host: wires every component and exposes the command table.

activate() builds the components in dependency order and starts the
background tasks; deactivate() tears them down in reverse. Commands
never raise to the caller: each failure becomes one
editor notification and one structured log entry.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Awaitable, Callable
from pathlib import Path

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from ecorefactor.backend.client import BackendClient
from ecorefactor.backend.health import HealthPoller
from ecorefactor.backend.log_stream import LogStreamReconnector
from ecorefactor.cache.file_cache import FileFingerprintCache, FileRecord
from ecorefactor.cache.fingerprint import fingerprint_file, normalize_path
from ecorefactor.config import Settings, create_store_engine
from ecorefactor.constants import (
    PYTHON_SUFFIX,
    WORKSPACE_PATH_KEY,
    FileStatus,
    Freshness,
    RefactorMode,
    ServerStatus,
)
from ecorefactor.editor.protocols import EditorPlatform
from ecorefactor.logger import SessionLogger
from ecorefactor.models.base import Base
from ecorefactor.repositories.protocols import WorkspaceStore
from ecorefactor.repositories.workspace_repo import SqlWorkspaceStore
from ecorefactor.resilience.errors import (
    EcoRefactorError,
    WorkspaceNotConfigured,
)
from ecorefactor.resilience.retry import RetryPolicy
from ecorefactor.services.detection_service import DetectionService
from ecorefactor.services.diff_tracker import DiffSessionTracker
from ecorefactor.services.events import SessionCallback, SessionEvent
from ecorefactor.services.filesystem import LocalFileSystem
from ecorefactor.services.metrics_service import MetricsService
from ecorefactor.services.refactor_session import (
    RefactorSession,
    RefactorSessionController,
)
from ecorefactor.services.server_status import ServerStatusMonitor
from ecorefactor.services.smell_filters import SmellFilterConfig
from ecorefactor.services.status_projector import project, project_smell

logger = logging.getLogger(__name__)


class Extension:
    """Composition root for one workspace.

    ``store`` and ``transport`` are injection points for tests; by
    default the store is SQLite at ``settings.state_db_url`` and the
    client talks to ``settings.backend_url``.
    """

    def __init__(
        self,
        settings: Settings,
        editor: EditorPlatform,
        *,
        store: WorkspaceStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        fs: LocalFileSystem | None = None,
        on_session_event: SessionCallback | None = None,
    ) -> None:
        self.settings = settings
        self.editor = editor
        self._injected_store = store
        self._transport = transport
        self._fs = fs or LocalFileSystem()
        self._on_session_event = on_session_event
        self._engine: AsyncEngine | None = None
        self._workspace_root: str | None = None
        self._active = False

    # ── Lifecycle ─────────────────────────────────────────

    async def activate(self, *, background: bool = True) -> None:
        """Build components, restore persisted state, start pollers.

        With ``background=False`` the health poller and log streams are
        not started (one-shot CLI commands and tests).
        """
        if self._active:
            return
        s = self.settings
        self.session_logger = SessionLogger(s.log_dir, s.log_level)

        if self._injected_store is not None:
            self.store: WorkspaceStore = self._injected_store
        else:
            self._engine = create_store_engine(s.state_db_url)
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            self.store = SqlWorkspaceStore(
                async_sessionmaker(self._engine, expire_on_commit=False)
            )

        self.monitor = ServerStatusMonitor()
        self.client = BackendClient(s, transport=self._transport)
        self.filters = SmellFilterConfig(s.smells_config_path)
        self.filters.load()
        self.cache = FileFingerprintCache(self.store)
        await self.cache.load()
        self.metrics = MetricsService(self.store)
        self.tracker = DiffSessionTracker(self.editor, self.store, self._fs)
        swept = await self.tracker.sweep_orphans()
        if swept:
            logger.info("event=orphans_swept count=%d", swept)

        root = await self.store.get(WORKSPACE_PATH_KEY)
        self._workspace_root = root if isinstance(root, str) else None

        self.controller = RefactorSessionController(
            cache=self.cache,
            client=self.client,
            tracker=self.tracker,
            monitor=self.monitor,
            metrics=self.metrics,
            workspace_root=lambda: self._workspace_root,
            fs=self._fs,
            session_logger=self.session_logger,
            on_transition=self._session_event,
        )
        self.detection = DetectionService(
            cache=self.cache,
            client=self.client,
            monitor=self.monitor,
            filters=self.filters,
            editor=self.editor,
            session_logger=self.session_logger,
        )
        self.health = HealthPoller(
            self.client,
            self.monitor,
            RetryPolicy(
                max_attempts=s.health_retry_max_attempts,
                base_delay=s.health_retry_base_delay,
                multiplier=s.health_retry_multiplier,
                max_delay=s.health_retry_max_delay,
                name="health",
            ),
            s.health_poll_interval_seconds,
        )
        self.log_stream = LogStreamReconnector(
            self.client,
            RetryPolicy(
                max_attempts=s.log_stream_retry_max_attempts,
                base_delay=s.log_stream_retry_base_delay,
                multiplier=s.log_stream_retry_multiplier,
                max_delay=s.log_stream_retry_max_delay,
                name="log_stream",
            ),
            self.editor.append_output,
        )
        self._unsubscribe_status = self.monitor.subscribe(self._status_changed)

        if background:
            self.health.start()
            if await self.client.init_logs(str(s.log_dir.resolve())):
                self.log_stream.start(s.log_channels)
            else:
                self.editor.show_warning(
                    "Failed to initialize backend logs. "
                    "Log streaming is disabled."
                )
        self._active = True
        logger.info(
            "event=extension_activated records=%d workspace=%s",
            len(self.cache),
            self._workspace_root,
        )

    async def deactivate(self) -> None:
        if not self._active:
            return
        self._active = False
        await self.controller.shutdown()
        await self.health.stop()
        await self.log_stream.stop()
        self._unsubscribe_status()
        self.monitor.close()
        await self.client.aclose()
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
        logger.info("event=extension_deactivated")

    @property
    def active(self) -> bool:
        return self._active

    @property
    def workspace_root(self) -> str | None:
        return self._workspace_root

    # ── Commands ──────────────────────────────────────────

    async def detect(self, path: str) -> list[FileRecord] | None:
        """Detect a single file or every Python file under a folder."""

        async def _run() -> list[FileRecord]:
            if Path(path).is_dir():
                records = await self.detection.detect_folder(path)
            else:
                record = await self.detection.detect_file(path)
                records = [record] if record else []
            for found in records:
                self.controller.forget(found.path)
            return records

        return await self._command("detect", _run)

    async def refactor(self, smell_id: str) -> RefactorSession | None:
        return await self._command(
            "refactor",
            lambda: self.controller.start(smell_id, RefactorMode.SINGLE),
        )

    async def refactor_all(self, smell_id: str) -> RefactorSession | None:
        return await self._command(
            "refactor_all",
            lambda: self.controller.start(smell_id, RefactorMode.ALL_OF_TYPE),
        )

    async def accept(self) -> RefactorSession | None:
        session = await self._command("accept", self.controller.commit)
        if session is not None:
            self.editor.show_info("Refactoring successfully applied")
        return session

    async def reject(self) -> RefactorSession | None:
        session = await self._command("reject", self.controller.discard)
        if session is not None:
            self.editor.show_info("Refactoring changes discarded")
        return session

    async def wipe_cache(self) -> None:
        await self.cache.clear_all()
        self.editor.show_info("Smells cache cleared successfully.")

    async def configure_workspace(self, path: str) -> str | None:
        async def _run() -> str:
            root = normalize_path(path)
            if not Path(root).is_dir() or not _contains_python(root):
                raise WorkspaceNotConfigured(
                    f"{root} has no Python files",
                    user_message=(
                        "No valid Python folders found. A valid folder "
                        "must contain Python files (*.py)."
                    ),
                )
            await self.store.set(WORKSPACE_PATH_KEY, root)
            self._workspace_root = root
            self.editor.show_info(
                f"Workspace configured for folder: {Path(root).name}"
            )
            return root

        return await self._command("configure_workspace", _run)

    async def reset_configuration(self) -> None:
        """Forget the workspace root and all analysis data."""
        await self.controller.shutdown()
        await self.store.delete(WORKSPACE_PATH_KEY)
        self._workspace_root = None
        await self.cache.clear_all()
        logger.info("event=workspace_reset")

    async def export_metrics(self) -> Path | None:
        async def _run() -> Path | None:
            if not self._workspace_root:
                raise WorkspaceNotConfigured("no workspace to export into")
            target = await self.metrics.export(self._workspace_root)
            if target is None:
                self.editor.show_info("No metrics data available to export.")
            else:
                self.editor.show_info(f"Metrics data exported to {target}")
            return target

        return await self._command("export_metrics", _run)

    # ── Listeners & queries ───────────────────────────────

    async def on_file_saved(self, path: str) -> Freshness:
        """Re-fingerprint a saved file and flag its cache entry."""
        if not path.endswith(PYTHON_SUFFIX):
            return Freshness.UNKNOWN
        try:
            live = fingerprint_file(path)
        except OSError as exc:
            logger.warning("event=save_fingerprint_failed path=%s error=%s", path, exc)
            return Freshness.UNKNOWN
        freshness = await self.cache.check_freshness(path, live)
        if freshness is Freshness.OUTDATED:
            self.editor.show_info(
                f"{Path(path).name} changed. Re-run detection to refresh smells."
            )
        return freshness

    async def on_file_deleted(self, path: str) -> bool:
        """Forget everything cached for a file removed from disk."""
        if not path.endswith(PYTHON_SUFFIX):
            return False
        self.detection.forget(path)
        self.controller.forget(path)
        removed = await self.cache.clear(path)
        if removed:
            logger.info("event=file_deleted path=%s", normalize_path(path))
        return removed

    def file_status(self, path: str) -> FileStatus:
        return project(
            self.cache.get(path),
            self.controller.current_session,
            path=path,
            server_status=self.monitor.status,
            detecting=self.detection.is_detecting(path),
            detection_failed=self.detection.has_failed(path),
        )

    def smell_status(self, smell_id: str) -> FileStatus | None:
        return project_smell(
            smell_id,
            self.cache,
            self.controller.current_session,
            server_status=self.monitor.status,
        )

    # ── Internals ─────────────────────────────────────────

    async def _command[T](
        self, name: str, operation: Callable[[], Awaitable[T]]
    ) -> T | None:
        try:
            return await operation()
        except EcoRefactorError as exc:
            logger.error(
                "event=command_failed command=%s error=%s: %s",
                name,
                type(exc).__name__,
                exc,
            )
            self._report(name, exc)
            self.editor.show_error(exc.user_message)
            return None
        except Exception as exc:
            logger.exception("event=command_crashed command=%s", name)
            self._report(name, exc)
            self.editor.show_error(EcoRefactorError.user_message)
            return None

    def _report(self, name: str, exc: Exception) -> None:
        session = self.controller.current_session
        self.session_logger.log_error(
            session.session_id if session else None,
            name,
            type(exc).__name__,
            str(exc),
        )

    def _session_event(self, event: SessionEvent) -> None:
        self.editor.append_output(
            "refactor",
            f"session {event.session_id}: {event.previous} -> {event.current}",
        )
        if self._on_session_event:
            self._on_session_event(event)

    def _status_changed(
        self, previous: ServerStatus, current: ServerStatus
    ) -> None:
        self.editor.append_output(
            "main", f"backend status: {previous} -> {current}"
        )


def _contains_python(folder: str) -> bool:
    for _, _, filenames in os.walk(folder):
        if any(name.endswith(PYTHON_SUFFIX) for name in filenames):
            return True
    return False
