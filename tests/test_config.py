"""Tests for Settings validators and the store engine factory."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import text

from ecorefactor.config import Settings, create_store_engine


class TestSettings:
    def test_defaults(self) -> None:
        s = Settings()
        assert s.backend_url == "http://127.0.0.1:8000"
        assert s.log_channels == ["main", "detect", "refactor"]
        assert s.smells_config_path.name == "smells.json"
        assert s.smells_config_path.exists()

    def test_trailing_slash_stripped(self) -> None:
        s = Settings(backend_url="http://localhost:8000/")
        assert s.backend_url == "http://localhost:8000"

    def test_channels_from_comma_string(self) -> None:
        s = Settings(log_channels="main , detect")  # type: ignore[arg-type]
        assert s.log_channels == ["main", "detect"]

    def test_channels_list_passthrough(self) -> None:
        s = Settings(log_channels=["refactor"])
        assert s.log_channels == ["refactor"]

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ECO_BACKEND_URL", "http://eco.internal:9000/")
        monkeypatch.setenv("ECO_LOG_CHANNELS", "detect,refactor")
        s = Settings()
        assert s.backend_url == "http://eco.internal:9000"
        assert s.log_channels == ["detect", "refactor"]

    @pytest.mark.parametrize("interval", [0, -1.5])
    def test_poll_interval_must_be_positive(self, interval: float) -> None:
        with pytest.raises(ValueError, match="must be positive"):
            Settings(health_poll_interval_seconds=interval)


class TestCreateStoreEngine:
    async def test_sqlite_url_converted_and_dir_created(
        self, tmp_path: Path
    ) -> None:
        db = tmp_path / "nested" / "state.db"
        engine = create_store_engine(f"sqlite:///{db}")
        try:
            assert engine.url.drivername == "sqlite+aiosqlite"
            assert db.parent.is_dir()
            async with engine.connect() as conn:
                mode = (
                    await conn.execute(text("PRAGMA journal_mode"))
                ).scalar_one()
            assert mode == "wal"
        finally:
            await engine.dispose()

    async def test_memory_url(self) -> None:
        engine = create_store_engine("sqlite:///:memory:")
        try:
            async with engine.connect() as conn:
                assert (await conn.execute(text("SELECT 1"))).scalar_one() == 1
        finally:
            await engine.dispose()
