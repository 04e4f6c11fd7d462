"""SQLAlchemy ORM models."""

from ecorefactor.models.base import Base
from ecorefactor.models.workspace_entry import WorkspaceEntry

__all__ = [
    "Base",
    "WorkspaceEntry",
]
