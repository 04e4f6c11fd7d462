"""Structured JSON logger for refactor sessions and surfaced errors."""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from ecorefactor.constants import ERROR_TRUNCATION_CHARS, SESSION_LOG_FILENAME
from ecorefactor.logging_config import LOG_DATEFMT, LOG_FORMAT

__all__ = ["SessionLogger", "LOG_FORMAT", "LOG_DATEFMT"]


class SessionLogger:
    """Structured JSON logger with session_id correlation."""

    def __init__(self, log_dir: Path, level: str = "INFO") -> None:
        self._log_dir = log_dir
        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._logger = logging.getLogger("ecorefactor.sessions")
        self._logger.setLevel(getattr(logging, level.upper()))

        self.path = (log_dir / SESSION_LOG_FILENAME).resolve()
        # One workspace per process at a time: re-point on a new log_dir
        for old in list(self._logger.handlers):
            if (
                isinstance(old, logging.FileHandler)
                and Path(old.baseFilename) != self.path
            ):
                self._logger.removeHandler(old)
                old.close()

        if not self._logger.handlers:
            handler = logging.FileHandler(self.path)
            handler.setFormatter(logging.Formatter("%(message)s"))
            self._logger.addHandler(handler)

    def log_transition(
        self,
        session_id: str,
        from_state: str,
        to_state: str,
        target: str,
    ) -> None:
        self._logger.info(
            json.dumps({
                "type": "transition",
                "timestamp": datetime.now(UTC).isoformat(),
                "session_id": session_id,
                "from": from_state,
                "to": to_state,
                "target": target,
            })
        )

    def log_error(
        self,
        session_id: str | None,
        component: str,
        error_type: str,
        error: str,
    ) -> None:
        self._logger.error(
            json.dumps({
                "type": "error",
                "timestamp": datetime.now(UTC).isoformat(),
                "session_id": session_id,
                "component": component,
                "error_type": error_type,
                "error": error[:ERROR_TRUNCATION_CHARS],
            })
        )

    def log_commit(
        self,
        session_id: str,
        paths: list[str],
        energy_saved: float | None,
        duration_ms: float,
    ) -> None:
        self._logger.info(
            json.dumps({
                "type": "commit",
                "timestamp": datetime.now(UTC).isoformat(),
                "session_id": session_id,
                "paths": paths,
                "energy_saved": energy_saved,
                "duration_ms": duration_ms,
            })
        )
