"""Periodic backend health polling."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from ecorefactor.backend.client import BackendClient
from ecorefactor.constants import ServerStatus
from ecorefactor.resilience.retry import RetryPolicy
from ecorefactor.services.server_status import ServerStatusMonitor

logger = logging.getLogger(__name__)


class HealthPoller:
    """Polls ``GET /health`` and feeds a ServerStatusMonitor.

    Each poll is one probe wrapped in the retry policy, so a single
    dropped connection does not flip the status to DOWN. A non-2xx
    answer is definitive and marks DOWN without retrying. The status
    clears back to UP on the next healthy poll.
    """

    def __init__(
        self,
        client: BackendClient,
        monitor: ServerStatusMonitor,
        policy: RetryPolicy,
        interval_seconds: float,
    ) -> None:
        self._client = client
        self._monitor = monitor
        self._policy = policy
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    async def poll_once(self) -> ServerStatus:
        try:
            healthy = await self._policy.run(self._client.check_health)
        except Exception as exc:
            logger.warning(
                "event=health_check_failed error=%s: %s",
                type(exc).__name__,
                exc,
            )
            healthy = False
        status = ServerStatus.UP if healthy else ServerStatus.DOWN
        self._monitor.set_status(status)
        return status

    async def _loop(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        """Start background polling. No-op if already running."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._loop(), name="health-poller")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
