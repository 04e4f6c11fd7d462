"""Environment-based configuration and store engine factory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from ecorefactor.constants import (
    CB_DETECT_FAILURE_THRESHOLD,
    CB_DETECT_RECOVERY_TIMEOUT,
    HEALTH_RETRY_BASE_DELAY,
    HEALTH_RETRY_MAX_ATTEMPTS,
    HEALTH_RETRY_MAX_DELAY,
    HEALTH_RETRY_MULTIPLIER,
    LOG_STREAM_RETRY_BASE_DELAY,
    LOG_STREAM_RETRY_MAX_ATTEMPTS,
    LOG_STREAM_RETRY_MAX_DELAY,
    LOG_STREAM_RETRY_MULTIPLIER,
)

logger = logging.getLogger(__name__)

_DEFAULT_SMELLS_CONFIG = Path(__file__).parent / "data" / "smells.json"


class Settings(BaseSettings):
    """Reads from .env file and environment variables (prefix ECO_)."""

    # Backend
    backend_url: str = "http://127.0.0.1:8000"
    request_timeout_seconds: float = 120.0
    health_timeout_seconds: float = 5.0
    health_poll_interval_seconds: float = 10.0

    # Retry policies (health probe + log stream)
    health_retry_max_attempts: int = HEALTH_RETRY_MAX_ATTEMPTS
    health_retry_base_delay: float = HEALTH_RETRY_BASE_DELAY
    health_retry_multiplier: float = HEALTH_RETRY_MULTIPLIER
    health_retry_max_delay: float = HEALTH_RETRY_MAX_DELAY
    log_stream_retry_max_attempts: int = LOG_STREAM_RETRY_MAX_ATTEMPTS
    log_stream_retry_base_delay: float = LOG_STREAM_RETRY_BASE_DELAY
    log_stream_retry_multiplier: float = LOG_STREAM_RETRY_MULTIPLIER
    log_stream_retry_max_delay: float = LOG_STREAM_RETRY_MAX_DELAY

    # Detection circuit breaker
    detect_failure_threshold: int = CB_DETECT_FAILURE_THRESHOLD
    detect_recovery_timeout: int = CB_DETECT_RECOVERY_TIMEOUT

    # Workspace store
    state_db_url: str = "sqlite:///.ecorefactor/state.db"

    # Logging
    log_dir: Path = Path(".ecorefactor/logs")
    log_level: str = "INFO"
    log_channels: Annotated[list[str], NoDecode] = [
        "main",
        "detect",
        "refactor",
    ]

    # Smell filters
    smells_config_path: Path = _DEFAULT_SMELLS_CONFIG

    @field_validator("backend_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_channels", mode="before")
    @classmethod
    def _parse_channels(cls, v: Any) -> Any:
        """Accept comma-separated string or JSON array."""
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("health_poll_interval_seconds")
    @classmethod
    def _validate_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(
                "health_poll_interval_seconds must be positive"
            )
        return v

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "ECO_",
        "extra": "ignore",
    }


def create_store_engine(
    url: str, *, echo: bool = False
) -> AsyncEngine:
    """Create async SQLite engine for the workspace store.

    Handles URL conversion (sqlite:/// → sqlite+aiosqlite:///),
    creates the parent directory of file-backed databases, and sets
    WAL mode via a pool-connect event listener so it fires once per
    raw DBAPI connection.
    """
    if url.startswith("sqlite:///"):
        raw_path = url[len("sqlite:///"):]
        if raw_path and raw_path != ":memory:":
            Path(raw_path).parent.mkdir(parents=True, exist_ok=True)
        db_url = "sqlite+aiosqlite:///" + raw_path
    else:
        db_url = url
    engine = create_async_engine(db_url, echo=echo)

    @event.listens_for(engine.sync_engine, "connect")
    def _set_wal_mode(
        dbapi_conn: object,
        _connection_record: object,
    ) -> None:
        cursor = dbapi_conn.cursor()  # type: ignore[union-attr]
        cursor.execute("PRAGMA journal_mode=WAL")  # pyright: ignore[reportUnknownMemberType]
        cursor.close()  # pyright: ignore[reportUnknownMemberType]

    logger.debug("event=store_engine_created url=%s", db_url)
    return engine
