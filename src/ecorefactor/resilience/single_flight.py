"""In-flight request deduplication for detection calls.

SingleFlight prevents duplicate concurrent backend work for the same
key. If detection is running for ``/ws/a.py`` and a second detect
command arrives for the same file (e.g. a folder scan overlapping a
save-triggered re-detect), the second caller awaits the first result
instead of posting another request.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any


@dataclass
class _Pending:
    key: str
    done: asyncio.Event = field(default_factory=asyncio.Event)
    result: Any = None
    error: BaseException | None = None


class SingleFlight:
    """Shares one in-flight coroutine result between callers of a key.

    Usage::

        flights = SingleFlight()
        smells = await flights.do("/ws/a.py", lambda: client.detect(...))
    """

    def __init__(self) -> None:
        self._pending: dict[str, _Pending] = {}
        self._lock = asyncio.Lock()

    async def do(
        self,
        key: str,
        operation: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Run operation once per key; concurrent callers share the outcome.

        The lock only covers registration and removal so a waiter can
        never observe a half-removed entry and start a duplicate.
        """
        owner: _Pending | None = None
        async with self._lock:
            pending = self._pending.get(key)
            if pending is None:
                owner = _Pending(key=key)
                self._pending[key] = owner

        if pending is not None:
            await pending.done.wait()
            if pending.error:
                raise pending.error
            return pending.result

        if owner is None:
            raise RuntimeError("unreachable: owner unset")
        try:
            owner.result = await operation()
            return owner.result
        except BaseException as exc:
            owner.error = exc
            raise
        finally:
            owner.done.set()
            async with self._lock:
                self._pending.pop(key, None)

    def in_flight(self, key: str) -> bool:
        return key in self._pending

    @property
    def keys(self) -> list[str]:
        """Return keys with an operation currently running."""
        return list(self._pending.keys())
