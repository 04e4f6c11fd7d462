"""Tests for HealthPoller feeding ServerStatusMonitor."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from ecorefactor.backend.client import BackendClient
from ecorefactor.backend.health import HealthPoller
from ecorefactor.config import Settings
from ecorefactor.constants import ServerStatus
from ecorefactor.resilience.retry import RetryPolicy
from ecorefactor.services.server_status import ServerStatusMonitor

_POLICY = RetryPolicy(max_attempts=3, base_delay=0.0, name="health")


def _poller(
    settings: Settings,
    monitor: ServerStatusMonitor,
    handler,
) -> HealthPoller:
    client = BackendClient(settings, transport=httpx.MockTransport(handler))
    return HealthPoller(client, monitor, _POLICY, interval_seconds=0.01)


@pytest.mark.asyncio
async def test_healthy_marks_up(
    settings: Settings, monitor: ServerStatusMonitor
) -> None:
    poller = _poller(settings, monitor, lambda r: httpx.Response(200))
    assert await poller.poll_once() is ServerStatus.UP
    assert monitor.status is ServerStatus.UP


@pytest.mark.asyncio
async def test_unhealthy_answer_marks_down_without_retry(
    settings: Settings, monitor: ServerStatusMonitor
) -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(503)

    poller = _poller(settings, monitor, handler)
    assert await poller.poll_once() is ServerStatus.DOWN
    assert calls == 1


@pytest.mark.asyncio
async def test_transport_errors_retried_then_down(
    settings: Settings, monitor: ServerStatusMonitor
) -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        raise httpx.ConnectError("refused", request=request)

    poller = _poller(settings, monitor, handler)
    assert await poller.poll_once() is ServerStatus.DOWN
    assert calls == _POLICY.max_attempts


@pytest.mark.asyncio
async def test_single_drop_recovers_within_poll(
    settings: Settings, monitor: ServerStatusMonitor
) -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200)

    poller = _poller(settings, monitor, handler)
    assert await poller.poll_once() is ServerStatus.UP


@pytest.mark.asyncio
async def test_background_loop_start_stop(
    settings: Settings, monitor: ServerStatusMonitor
) -> None:
    seen: list[tuple[ServerStatus, ServerStatus]] = []
    monitor.subscribe(lambda prev, cur: seen.append((prev, cur)))
    poller = _poller(settings, monitor, lambda r: httpx.Response(200))

    poller.start()
    assert poller.running
    await asyncio.sleep(0.05)
    await poller.stop()

    assert not poller.running
    # Notified once despite repeated healthy polls
    assert seen == [(ServerStatus.UNKNOWN, ServerStatus.UP)]
