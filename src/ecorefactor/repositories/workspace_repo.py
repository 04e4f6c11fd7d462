"""SQL implementation of WorkspaceStore."""

import json
from typing import Any

from sqlalchemy import delete as sa_delete
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ecorefactor.models.workspace_entry import WorkspaceEntry


class SqlWorkspaceStore:
    """Workspace store that owns its own sessions.

    Writes arrive from commands, listeners and the health poller at
    arbitrary points, so each operation opens a short-lived session
    instead of sharing one long-lived transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._session_factory = session_factory

    async def get(self, key: str, default: Any = None) -> Any:
        async with self._session_factory() as session:
            result = await session.execute(
                select(WorkspaceEntry.value_json).where(
                    WorkspaceEntry.key == key
                )
            )
            raw = result.scalar_one_or_none()
        if raw is None:
            return default
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        async with self._session_factory() as session, session.begin():
            await session.merge(
                WorkspaceEntry(key=key, value_json=payload)
            )

    async def delete(self, key: str) -> None:
        async with self._session_factory() as session, session.begin():
            await session.execute(
                sa_delete(WorkspaceEntry).where(WorkspaceEntry.key == key)
            )

    async def keys(self) -> list[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(WorkspaceEntry.key).order_by(WorkspaceEntry.key)
            )
            return list(result.scalars().all())
