"""Tests for the pure file-status projection."""

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from ecorefactor.cache.file_cache import FileFingerprintCache, FileRecord
from ecorefactor.constants import (
    FileStatus,
    Freshness,
    RefactorMode,
    ServerStatus,
    SessionState,
)
from ecorefactor.services.refactor_session import RefactorSession
from ecorefactor.services.status_projector import (
    project,
    project_smell,
    status_label,
)
from tests.conftest import Workspace, make_smell


def _record(path: str, *, smells: int = 1, fresh: bool = True) -> FileRecord:
    return FileRecord(
        path=path,
        fingerprint="H1",
        smells=tuple(make_smell(path, line=n + 1) for n in range(smells)),
        freshness=Freshness.FRESH if fresh else Freshness.OUTDATED,
    )


def _session(workspace: Workspace, state: SessionState) -> RefactorSession:
    session = RefactorSession(
        session_id="abc123def456",
        mode=RefactorMode.SINGLE,
        target_smell=workspace.smell,
        target_path=workspace.a,
        target_fingerprint="H1",
    )
    session.result = workspace.refactored_data()
    session.state = state
    return session


class TestRecordOnly:
    def test_no_record(self) -> None:
        assert project(None, path="/ws/x.py") is FileStatus.UNANALYZED

    def test_no_record_server_down(self) -> None:
        status = project(None, path="/ws/x.py", server_status=ServerStatus.DOWN)
        assert status is FileStatus.SERVER_DOWN

    def test_record_with_smells(self) -> None:
        assert project(_record("/ws/a.py")) is FileStatus.HAS_SMELLS

    def test_clean_record(self) -> None:
        assert project(_record("/ws/a.py", smells=0)) is FileStatus.CLEAN

    def test_outdated_wins_over_smells(self) -> None:
        record = _record("/ws/a.py", fresh=False)
        assert project(record) is FileStatus.OUTDATED

    def test_server_down_does_not_hide_cached_results(self) -> None:
        status = project(_record("/ws/a.py"), server_status=ServerStatus.DOWN)
        assert status is FileStatus.HAS_SMELLS


class TestDetection:
    def test_detecting_is_queued(self) -> None:
        assert project(_record("/ws/a.py"), detecting=True) is FileStatus.QUEUED

    def test_failed_detection(self) -> None:
        status = project(None, path="/ws/a.py", detection_failed=True)
        assert status is FileStatus.FAILED


class TestSessionPrecedence:
    @pytest.mark.parametrize(
        ("state", "expected"),
        [
            (SessionState.REQUESTING, FileStatus.QUEUED),
            (SessionState.AWAITING_REVIEW, FileStatus.AWAITING_REVIEW),
            (SessionState.COMMITTING, FileStatus.AWAITING_REVIEW),
            (SessionState.ROLLING_BACK, FileStatus.AWAITING_REVIEW),
            (SessionState.FAILED, FileStatus.FAILED),
        ],
    )
    def test_session_state_mapping(
        self,
        workspace: Workspace,
        state: SessionState,
        expected: FileStatus,
    ) -> None:
        session = _session(workspace, state)
        assert project(_record(workspace.a), session) is expected

    def test_affected_file_follows_session(self, workspace: Workspace) -> None:
        session = _session(workspace, SessionState.AWAITING_REVIEW)
        status = project(None, session, path=workspace.b)
        assert status is FileStatus.AWAITING_REVIEW

    def test_finished_session_falls_through(self, workspace: Workspace) -> None:
        for state in (SessionState.COMMITTED, SessionState.DISCARDED):
            session = _session(workspace, state)
            assert project(_record(workspace.a), session) is FileStatus.HAS_SMELLS

    def test_unrelated_file_ignores_session(self, workspace: Workspace) -> None:
        session = _session(workspace, SessionState.AWAITING_REVIEW)
        other = str(Path(workspace.root) / "c.py")
        assert project(_record(other, smells=0), session) is FileStatus.CLEAN

    def test_session_wins_over_detection(self, workspace: Workspace) -> None:
        session = _session(workspace, SessionState.REQUESTING)
        status = project(
            _record(workspace.a), session, detection_failed=True
        )
        assert status is FileStatus.QUEUED


class TestFailedSession:
    def test_failure_shown_while_record_unchanged(
        self, workspace: Workspace
    ) -> None:
        session = _session(workspace, SessionState.FAILED)
        assert project(_record(workspace.a), session) is FileStatus.FAILED

    def test_redetected_contents_replace_failure(
        self, workspace: Workspace
    ) -> None:
        session = _session(workspace, SessionState.FAILED)
        record = dataclasses.replace(_record(workspace.a), fingerprint="H2")
        assert project(record, session) is FileStatus.HAS_SMELLS

    def test_edit_after_failure_shows_outdated(
        self, workspace: Workspace
    ) -> None:
        session = _session(workspace, SessionState.FAILED)
        record = _record(workspace.a, fresh=False)
        assert project(record, session) is FileStatus.OUTDATED

    def test_inputs_not_mutated(self, workspace: Workspace) -> None:
        record = _record(workspace.a)
        session = _session(workspace, SessionState.FAILED)
        project(record, session)
        assert record == _record(workspace.a)
        assert session.state is SessionState.FAILED


class TestProjectSmell:
    @pytest.mark.asyncio
    async def test_by_smell_id(
        self, cache: FileFingerprintCache, workspace: Workspace
    ) -> None:
        await cache.upsert(workspace.a, "H1", [workspace.smell])
        assert project_smell(workspace.smell.id, cache) is FileStatus.HAS_SMELLS

    @pytest.mark.asyncio
    async def test_unknown_id(self, cache: FileFingerprintCache) -> None:
        assert project_smell("nope", cache) is None

    @pytest.mark.asyncio
    async def test_follows_session(
        self, cache: FileFingerprintCache, workspace: Workspace
    ) -> None:
        await cache.upsert(workspace.a, "H1", [workspace.smell])
        session = _session(workspace, SessionState.AWAITING_REVIEW)
        status = project_smell(workspace.smell.id, cache, session)
        assert status is FileStatus.AWAITING_REVIEW


@pytest.mark.asyncio
async def test_projection_follows_cache_upsert(
    cache: FileFingerprintCache, workspace: Workspace
) -> None:
    session = _session(workspace, SessionState.FAILED)
    await cache.upsert(workspace.a, "H1", [workspace.smell])
    assert project(cache.get(workspace.a), session) is FileStatus.FAILED
    await cache.upsert(workspace.a, "H2", [])
    assert project(cache.get(workspace.a), session) is FileStatus.CLEAN


def test_every_status_has_label() -> None:
    for status in FileStatus:
        assert status_label(status)
    assert status_label(FileStatus.OUTDATED) == "File Outdated - Needs Reanalysis"
