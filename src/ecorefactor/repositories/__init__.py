"""Workspace store protocol and implementations."""

from ecorefactor.repositories.fakes import FakeWorkspaceStore
from ecorefactor.repositories.protocols import WorkspaceStore
from ecorefactor.repositories.workspace_repo import SqlWorkspaceStore

__all__ = [
    "FakeWorkspaceStore",
    "SqlWorkspaceStore",
    "WorkspaceStore",
]
