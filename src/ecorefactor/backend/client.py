"""Async HTTP client for the smell detection and refactoring backend.

- Detection calls go through a circuit breaker: after repeated
  transport/server failures the client fails fast with ServerDown
  until the recovery timeout elapses.
- Refactor calls are single-shot. The backend work is expensive, so a
  repeat must be user-initiated, never an automatic retry.
- Health probes return False for a non-2xx answer and let transport
  errors propagate, so the caller's RetryPolicy can classify them.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
from circuitbreaker import (  # pyright: ignore[reportUnknownVariableType]
    CircuitBreaker,
    CircuitBreakerError,
)
from pydantic import ValidationError

from ecorefactor.backend.schemas import (
    DetectRequest,
    RefactoredData,
    RefactorRequest,
    Smell,
)
from ecorefactor.config import Settings
from ecorefactor.constants import (
    DETECT_SERVER_DOWN_MESSAGE,
    ERROR_TRUNCATION_CHARS,
    RefactorMode,
)
from ecorefactor.resilience.errors import (
    BackendComputationError,
    ServerDown,
    is_retryable,
)

logger = logging.getLogger(__name__)

_REFACTOR_PATHS = {
    RefactorMode.SINGLE: "/refactor",
    RefactorMode.ALL_OF_TYPE: "/refactorAll",
}


def _counts_as_failure(
    thrown_type: type, thrown_value: BaseException
) -> bool:
    """Return True if the error should count toward opening the breaker.

    The circuitbreaker library calls this with (thrown_type, thrown_value).
    A 4xx answer or a malformed payload means the backend is up, so only
    transport, timeout and 5xx failures count.
    """
    return is_retryable(thrown_value)


def _error_detail(response: httpx.Response) -> tuple[str, str | None]:
    """Extract (detail, tempDir) from an error response body, if any."""
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text[:ERROR_TRUNCATION_CHARS], None
    if isinstance(body, dict):
        temp_dir = body.get("tempDir")
        detail = body.get("detail") or body.get("message") or "Unknown error"
        return str(detail), temp_dir if isinstance(temp_dir, str) else None
    return str(body)[:ERROR_TRUNCATION_CHARS], None


class BackendClient:
    """Thin typed wrapper around ``httpx.AsyncClient``.

    Usage::

        async with BackendClient(settings) as client:
            smells = await client.detect_smells(path, enabled)
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._http = httpx.AsyncClient(
            base_url=settings.backend_url,
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )
        self._detect_breaker = CircuitBreaker(  # pyright: ignore[reportUnknownMemberType]
            failure_threshold=settings.detect_failure_threshold,
            recovery_timeout=settings.detect_recovery_timeout,
            expected_exception=_counts_as_failure,
            name="backend_detect",
        )

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def base_url(self) -> str:
        return str(self._http.base_url)

    # ── Detection ─────────────────────────────────────────

    async def detect_smells(
        self,
        file_path: str,
        enabled_smells: dict[str, dict[str, Any]],
    ) -> list[Smell]:
        """POST /smells and decode the smell list."""
        if self._detect_breaker.opened:  # pyright: ignore[reportUnknownMemberType]
            raise ServerDown(
                "detection circuit open",
                user_message=DETECT_SERVER_DOWN_MESSAGE,
            )
        body = DetectRequest(
            file_path=file_path, enabled_smells=enabled_smells
        ).model_dump()
        logger.info("event=detect_request file=%s", file_path)
        try:
            with self._detect_breaker:  # pyright: ignore[reportUnknownMemberType]
                payload = await self._post_json("/smells", body)
        except CircuitBreakerError as exc:
            raise ServerDown(str(exc)) from exc

        if not isinstance(payload, list):
            raise BackendComputationError(
                f"expected a smell list, got {type(payload).__name__}"
            )
        try:
            smells = [Smell.model_validate(item) for item in payload]
        except ValidationError as exc:
            raise BackendComputationError(
                f"malformed smell in detection response: {exc}"
            ) from exc
        logger.info(
            "event=detect_complete file=%s smells=%d",
            file_path,
            len(smells),
        )
        return smells

    # ── Refactoring ───────────────────────────────────────

    async def refactor(
        self,
        smell: Smell,
        source_dir: str,
        mode: RefactorMode = RefactorMode.SINGLE,
    ) -> RefactoredData:
        """POST /refactor or /refactorAll. Exactly one request, no retry."""
        path = _REFACTOR_PATHS[mode]
        body = RefactorRequest(
            source_dir=source_dir, smell=smell.to_wire()
        ).model_dump()
        logger.info(
            "event=refactor_request mode=%s rule=%s file=%s",
            mode,
            smell.rule,
            smell.path,
        )
        payload = await self._post_json(path, body)
        try:
            data = RefactoredData.model_validate(payload)
        except ValidationError as exc:
            temp_dir = (
                payload.get("tempDir") if isinstance(payload, dict) else None
            )
            raise BackendComputationError(
                f"malformed refactor response: {exc}",
                temp_dir=temp_dir if isinstance(temp_dir, str) else None,
            ) from exc
        logger.info(
            "event=refactor_complete rule=%s affected=%d energy_saved=%s",
            smell.rule,
            len(data.affected_files),
            data.energy_saved,
        )
        return data

    # ── Health & logs ─────────────────────────────────────

    async def check_health(self) -> bool:
        """GET /health. Transport errors propagate to the caller."""
        response = await self._http.get(
            "/health", timeout=self._settings.health_timeout_seconds
        )
        return response.is_success

    async def init_logs(self, log_dir: str) -> bool:
        """Ask the backend to mirror its logs into ``log_dir``."""
        try:
            response = await self._http.post(
                "/logs/init", json={"log_dir": log_dir}
            )
        except httpx.TransportError as exc:
            logger.error("event=log_init_failed error=%s", exc)
            return False
        if not response.is_success:
            logger.error(
                "event=log_init_failed status=%d", response.status_code
            )
            return False
        return True

    async def stream_logs(self, channel: str) -> AsyncIterator[str]:
        """Yield log lines from ``GET /logs/{channel}`` until it closes."""
        async with self._http.stream(
            "GET", f"/logs/{channel}", timeout=None
        ) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if line:
                    yield line

    # ── Internals ─────────────────────────────────────────

    async def _post_json(self, path: str, body: dict[str, Any]) -> Any:
        try:
            response = await self._http.post(path, json=body)
        except httpx.TransportError as exc:
            logger.error("event=backend_unreachable path=%s error=%s", path, exc)
            raise BackendComputationError(
                f"{path}: {type(exc).__name__}: {exc}",
                user_message=(
                    "Unable to reach the backend. "
                    "Please check your connection."
                ),
            ) from exc

        if not response.is_success:
            detail, temp_dir = _error_detail(response)
            logger.error(
                "event=backend_error path=%s status=%d detail=%s",
                path,
                response.status_code,
                detail,
            )
            raise BackendComputationError(
                f"{path} failed ({response.status_code}): {detail}",
                status_code=response.status_code,
                temp_dir=temp_dir,
            )

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise BackendComputationError(
                f"{path} returned invalid JSON"
            ) from exc
