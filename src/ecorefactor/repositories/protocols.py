"""Protocol-based store interfaces.

The SQL implementation satisfies these protocols structurally (no
inheritance). Test doubles can be plain classes matching the same
signatures.
"""

from typing import Any, Protocol


class WorkspaceStore(Protocol):
    """Persisted key-value workspace state (JSON-serialisable values)."""

    async def get(self, key: str, default: Any = None) -> Any: ...
    async def set(self, key: str, value: Any) -> None: ...
    async def delete(self, key: str) -> None: ...
    async def keys(self) -> list[str]: ...
