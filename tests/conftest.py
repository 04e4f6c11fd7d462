"""Shared test fixtures: fake store/editor/backend, workspace files."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from ecorefactor.backend.schemas import ChangedFile, RefactoredData, Smell
from ecorefactor.cache.file_cache import FileFingerprintCache
from ecorefactor.cache.fingerprint import compute_fingerprint, normalize_path
from ecorefactor.config import Settings
from ecorefactor.constants import RefactorMode, RuleKind
from ecorefactor.editor.fakes import FakeEditor
from ecorefactor.logger import SessionLogger
from ecorefactor.repositories.fakes import FakeWorkspaceStore
from ecorefactor.resilience.errors import EcoRefactorError
from ecorefactor.services.diff_tracker import DiffSessionTracker
from ecorefactor.services.metrics_service import MetricsService
from ecorefactor.services.refactor_session import RefactorSessionController
from ecorefactor.services.server_status import ServerStatusMonitor


def make_smell(
    path: str | Path,
    rule: RuleKind = RuleKind.TOO_MANY_ARGUMENTS,
    line: int = 1,
    column: int = 0,
    message: str = "Too many arguments (8/6)",
) -> Smell:
    """Build a Smell from wire-format data, as the backend would send it."""
    return Smell.model_validate(
        {
            "symbol": str(rule),
            "type": "refactor",
            "message": message,
            "messageId": "R0913",
            "confidence": "UNDEFINED",
            "path": str(path),
            "module": Path(path).stem,
            "obj": "func",
            "occurences": [
                {
                    "line": line,
                    "endLine": line,
                    "column": column,
                    "endColumn": column + 10,
                }
            ],
            "additionalInfo": {},
        }
    )


def write_file(path: Path, content: str) -> str:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return normalize_path(path)


def fingerprint_of(content: str) -> str:
    return compute_fingerprint(content.encode("utf-8"))


class FakeBackend:
    """Scriptable stand-in for BackendClient.

    ``refactor_result`` / ``refactor_error`` decide the reply. When
    ``gate`` is set, refactor() waits for it before replying, so tests
    can act while a request is in flight.
    """

    def __init__(self) -> None:
        self.detect_result: dict[str, list[Smell]] = {}
        self.detect_error: EcoRefactorError | None = None
        self.detect_calls: list[str] = []
        self.detect_gate: asyncio.Event | None = None
        self.refactor_result: RefactoredData | None = None
        self.refactor_error: EcoRefactorError | None = None
        self.refactor_calls: list[tuple[Smell, str, RefactorMode]] = []
        self.gate: asyncio.Event | None = None

    async def detect_smells(
        self,
        file_path: str,
        enabled_smells: dict[str, dict[str, Any]],
    ) -> list[Smell]:
        self.detect_calls.append(file_path)
        if self.detect_gate is not None:
            await self.detect_gate.wait()
        if self.detect_error is not None:
            raise self.detect_error
        return self.detect_result.get(file_path, [])

    async def refactor(
        self,
        smell: Smell,
        source_dir: str,
        mode: RefactorMode = RefactorMode.SINGLE,
    ) -> RefactoredData:
        self.refactor_calls.append((smell, source_dir, mode))
        if self.gate is not None:
            await self.gate.wait()
        if self.refactor_error is not None:
            raise self.refactor_error
        assert self.refactor_result is not None
        return self.refactor_result


class Workspace:
    """A tiny on-disk workspace: a.py, b.py and a backend temp dir.

    Mirrors the standard scenario: ``a.py`` holds one cached smell,
    the backend proposes new contents for ``a.py`` and ``b.py`` with an
    estimated saving of 0.5.
    """

    A_BEFORE = "def f(a, b, c, d, e, f, g, h):\n    return a\n"
    A_AFTER = "def f(cfg):\n    return cfg.a\n"
    B_BEFORE = "from a import f\nf(1, 2, 3, 4, 5, 6, 7, 8)\n"
    B_AFTER = "from a import f\nf(Config(1, 2, 3, 4, 5, 6, 7, 8))\n"

    def __init__(self, root: Path) -> None:
        self.root = root / "ws"
        self.temp_dir = root / "backend-tmp"
        self.a = write_file(self.root / "a.py", self.A_BEFORE)
        self.b = write_file(self.root / "b.py", self.B_BEFORE)
        self.a_refactored = write_file(
            self.temp_dir / "a.refactored.py", self.A_AFTER
        )
        self.b_refactored = write_file(
            self.temp_dir / "b.refactored.py", self.B_AFTER
        )
        self.smell = make_smell(self.a)

    def refactored_data(self, energy_saved: float | None = 0.5) -> RefactoredData:
        return RefactoredData(
            target_file=ChangedFile(
                original=self.a, refactored=self.a_refactored
            ),
            affected_files=[
                ChangedFile(original=self.b, refactored=self.b_refactored)
            ],
            energy_saved=energy_saved,
            temp_dir=str(self.temp_dir),
        )

    def read(self, path: str) -> str:
        return Path(path).read_text(encoding="utf-8")


@pytest.fixture
def store() -> FakeWorkspaceStore:
    return FakeWorkspaceStore()


@pytest.fixture
def editor() -> FakeEditor:
    return FakeEditor()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def monitor() -> ServerStatusMonitor:
    return ServerStatusMonitor()


@pytest.fixture
def session_logger(tmp_path: Path) -> SessionLogger:
    return SessionLogger(log_dir=tmp_path / "logs", level="INFO")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated to tmp_path with zero-delay retry policies."""
    return Settings(
        backend_url="http://backend.test",
        state_db_url=f"sqlite:///{tmp_path / 'state.db'}",
        log_dir=tmp_path / "logs",
        health_retry_base_delay=0.0,
        log_stream_retry_base_delay=0.0,
        health_poll_interval_seconds=0.01,
    )


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    return Workspace(tmp_path)


@pytest.fixture
async def cache(store: FakeWorkspaceStore) -> FileFingerprintCache:
    return FileFingerprintCache(store)


@pytest.fixture
def metrics(store: FakeWorkspaceStore) -> MetricsService:
    return MetricsService(store)


@pytest.fixture
def tracker(
    editor: FakeEditor, store: FakeWorkspaceStore
) -> DiffSessionTracker:
    return DiffSessionTracker(editor, store)


@pytest.fixture
async def controller(
    cache: FileFingerprintCache,
    backend: FakeBackend,
    tracker: DiffSessionTracker,
    monitor: ServerStatusMonitor,
    metrics: MetricsService,
    workspace: Workspace,
    session_logger: SessionLogger,
) -> RefactorSessionController:
    """Controller over the standard workspace, with a.py already detected."""
    await cache.upsert(
        workspace.a,
        fingerprint_of(Workspace.A_BEFORE),
        [workspace.smell],
    )
    backend.refactor_result = workspace.refactored_data()
    return RefactorSessionController(
        cache=cache,
        client=backend,
        tracker=tracker,
        monitor=monitor,
        metrics=metrics,
        workspace_root=lambda: str(workspace.root),
        session_logger=session_logger,
    )
