"""In-memory fake store for testing.

Dict-backed WorkspaceStore. Values go through a JSON round trip so
tests catch anything the SQL store could not persist.
"""

from __future__ import annotations

import json
from typing import Any


class FakeWorkspaceStore:
    """Dict-backed WorkspaceStore for testing."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}
        self.write_count = 0

    async def get(self, key: str, default: Any = None) -> Any:
        raw = self._store.get(key)
        if raw is None:
            return default
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        self._store[key] = json.dumps(value)
        self.write_count += 1

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def keys(self) -> list[str]:
        return sorted(self._store)
