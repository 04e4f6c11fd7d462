"""Tests for SqlWorkspaceStore on a file-backed SQLite database."""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from ecorefactor.config import create_store_engine
from ecorefactor.models.base import Base
from ecorefactor.repositories.workspace_repo import SqlWorkspaceStore


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    engine = create_store_engine(f"sqlite:///{tmp_path / 'db' / 'state.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_store(engine: AsyncEngine) -> SqlWorkspaceStore:
    return SqlWorkspaceStore(async_sessionmaker(engine, expire_on_commit=False))


async def test_get_missing_returns_default(sql_store: SqlWorkspaceStore) -> None:
    assert await sql_store.get("absent") is None
    assert await sql_store.get("absent", {}) == {}


async def test_set_and_get_round_trip(sql_store: SqlWorkspaceStore) -> None:
    value = {"/ws/a.py": {"fingerprint": "H1", "smells": []}}
    await sql_store.set("smell_cache", value)
    assert await sql_store.get("smell_cache") == value


async def test_set_overwrites(sql_store: SqlWorkspaceStore) -> None:
    await sql_store.set("workspace_configured_path", "/ws/one")
    await sql_store.set("workspace_configured_path", "/ws/two")
    assert await sql_store.get("workspace_configured_path") == "/ws/two"
    assert await sql_store.keys() == ["workspace_configured_path"]


async def test_delete(sql_store: SqlWorkspaceStore) -> None:
    await sql_store.set("a", 1)
    await sql_store.set("b", 2)
    await sql_store.delete("a")
    await sql_store.delete("never-set")
    assert await sql_store.keys() == ["b"]


async def test_survives_new_store_instance(
    engine: AsyncEngine, sql_store: SqlWorkspaceStore
) -> None:
    await sql_store.set("diff_sessions", {"s1": {"pairs": [], "temp_roots": []}})
    reopened = SqlWorkspaceStore(async_sessionmaker(engine))
    assert await reopened.get("diff_sessions") == {
        "s1": {"pairs": [], "temp_roots": []}
    }


async def test_wal_mode_enabled(engine: AsyncEngine, tmp_path: Path) -> None:
    assert (tmp_path / "db").is_dir()
    async with engine.connect() as conn:
        mode = (await conn.execute(text("PRAGMA journal_mode"))).scalar_one()
    assert mode == "wal"
