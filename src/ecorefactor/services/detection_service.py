"""Smell detection for a file or a folder, backed by the fingerprint cache.

A file is only sent to the backend when the cache cannot answer for
its current contents. Concurrent requests for the same path share one
backend call. Failures are surfaced through the editor and recorded so
the status projector can show them; they never propagate out of a
folder scan.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Protocol

from ecorefactor.backend.schemas import Smell
from ecorefactor.cache.file_cache import FileFingerprintCache, FileRecord
from ecorefactor.cache.fingerprint import fingerprint_file, normalize_path
from ecorefactor.constants import (
    DETECT_SERVER_DOWN_MESSAGE,
    PYTHON_SUFFIX,
    Freshness,
)
from ecorefactor.editor.protocols import EditorPlatform
from ecorefactor.logger import SessionLogger
from ecorefactor.resilience.errors import EcoRefactorError
from ecorefactor.resilience.single_flight import SingleFlight
from ecorefactor.services.server_status import ServerStatusMonitor
from ecorefactor.services.smell_filters import SmellFilterConfig

logger = logging.getLogger(__name__)


class DetectionBackend(Protocol):
    async def detect_smells(
        self,
        file_path: str,
        enabled_smells: dict[str, dict[str, Any]],
    ) -> list[Smell]: ...


class DetectionService:
    def __init__(
        self,
        *,
        cache: FileFingerprintCache,
        client: DetectionBackend,
        monitor: ServerStatusMonitor,
        filters: SmellFilterConfig,
        editor: EditorPlatform,
        session_logger: SessionLogger | None = None,
    ) -> None:
        self._cache = cache
        self._client = client
        self._monitor = monitor
        self._filters = filters
        self._editor = editor
        self._session_logger = session_logger
        self._flights = SingleFlight()
        self._failed: set[str] = set()

    def is_detecting(self, path: str) -> bool:
        return self._flights.in_flight(normalize_path(path))

    def has_failed(self, path: str) -> bool:
        return normalize_path(path) in self._failed

    def forget(self, path: str) -> None:
        self._failed.discard(normalize_path(path))

    async def detect_file(self, path: str) -> FileRecord | None:
        """Return the record for ``path``, detecting only if needed.

        None means detection was skipped or failed; the reason has
        already been surfaced to the user.
        """
        if not path.endswith(PYTHON_SUFFIX):
            logger.debug("event=detect_skipped reason=not_python path=%s", path)
            return None
        key = normalize_path(path)
        try:
            live = fingerprint_file(key)
        except OSError as exc:
            self._report_failure(key, f"Cannot read {Path(key).name}: {exc}")
            return None

        cached = self._cache.get(key)
        if cached is not None:
            freshness = await self._cache.check_freshness(key, live)
            if freshness is Freshness.FRESH:
                logger.info("event=detect_cache_hit path=%s", key)
                self._failed.discard(key)
                return self._cache.get(key)

        if self._monitor.is_down:
            self._editor.show_warning(DETECT_SERVER_DOWN_MESSAGE)
            logger.warning("event=detect_skipped reason=server_down path=%s", key)
            return None

        enabled = self._filters.enabled_for_backend()
        if not enabled:
            self._editor.show_warning("No smell detectors enabled in settings")
            logger.warning("event=detect_skipped reason=no_enabled_smells")
            return None

        try:
            smells: list[Smell] = await self._flights.do(
                key, lambda: self._client.detect_smells(key, enabled)
            )
        except EcoRefactorError as exc:
            self._report_failure(key, exc.user_message, exc)
            return None

        self._failed.discard(key)
        # A concurrent caller sharing this flight may already have stored it
        current = self._cache.get(key)
        if current is not None and current.fingerprint == live and current.is_fresh:
            return current
        return await self._cache.upsert(key, live, smells)

    async def detect_folder(self, folder: str) -> list[FileRecord]:
        """Detect every Python file under ``folder``, one at a time."""
        files = _walk_python_files(folder)
        logger.info(
            "event=detect_folder folder=%s files=%d", folder, len(files)
        )
        if not files:
            self._editor.show_warning(
                f"No Python files found in {Path(folder).name}"
            )
            return []
        self._editor.show_info(f"Analyzing {len(files)} Python files...")
        records: list[FileRecord] = []
        for path in files:
            record = await self.detect_file(path)
            if record is not None:
                records.append(record)
        return records

    def _report_failure(
        self,
        key: str,
        message: str,
        exc: BaseException | None = None,
    ) -> None:
        self._failed.add(key)
        logger.error(
            "event=detect_failed path=%s error=%s", key, exc or message
        )
        self._editor.show_error(f"Analysis failed: {message}")
        if self._session_logger:
            self._session_logger.log_error(
                None,
                "detection",
                type(exc).__name__ if exc else "OSError",
                str(exc or message),
            )


def _walk_python_files(folder: str) -> list[str]:
    found: list[str] = []
    for dirpath, dirnames, filenames in os.walk(folder):
        dirnames.sort()
        for name in sorted(filenames):
            if name.endswith(PYTHON_SUFFIX):
                found.append(os.path.join(dirpath, name))
    return found
