"""WorkspaceEntry ORM model: one row per persisted workspace-state key."""

from datetime import UTC, datetime

from sqlalchemy import String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from ecorefactor.models.base import Base


class WorkspaceEntry(Base):
    __tablename__ = "workspace_state"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
        onupdate=lambda: datetime.now(UTC),
    )
