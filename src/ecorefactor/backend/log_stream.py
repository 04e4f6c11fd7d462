"""Backend log side channel with reconnection.

Streams lines from ``GET /logs/{channel}`` into the editor's output
channel. A dropped stream reconnects under the shared RetryPolicy;
once the policy is exhausted the channel gives up and says so in the
output, without affecting detection or refactoring.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable

from ecorefactor.backend.client import BackendClient
from ecorefactor.resilience.retry import RetryPolicy

logger = logging.getLogger(__name__)

type LineSink = Callable[[str, str], None]


class StreamClosed(ConnectionError):
    """The backend closed a log stream; treated as a retryable drop."""


class LogStreamReconnector:
    def __init__(
        self,
        client: BackendClient,
        policy: RetryPolicy,
        sink: LineSink,
    ) -> None:
        self._client = client
        self._policy = policy
        self._sink = sink
        self._tasks: dict[str, asyncio.Task[None]] = {}

    async def _consume(self, channel: str) -> None:
        async for line in self._client.stream_logs(channel):
            self._sink(channel, line)
        raise StreamClosed(f"log stream {channel!r} closed")

    async def run_channel(self, channel: str) -> None:
        """Follow one channel until the retry policy is exhausted."""
        try:
            await self._policy.run(lambda: self._consume(channel))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning(
                "event=log_stream_gave_up channel=%s error=%s",
                channel,
                exc,
            )
            self._sink(channel, f"Log stream disconnected: {exc}")

    def start(self, channels: list[str]) -> None:
        for channel in channels:
            task = self._tasks.get(channel)
            if task is not None and not task.done():
                continue
            self._tasks[channel] = asyncio.create_task(
                self.run_channel(channel), name=f"log-stream-{channel}"
            )

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    @property
    def active_channels(self) -> list[str]:
        return [c for c, t in self._tasks.items() if not t.done()]
