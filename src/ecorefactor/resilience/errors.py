"""Error taxonomy and classification for structured error handling.

Every failure the client surfaces is an ``EcoRefactorError`` subclass
carrying a short ``user_message`` for the editor notification. The
free-form ``str(exc)`` goes to the structured log instead.

classify_error() buckets arbitrary exceptions so retry policies only
retry transient, server, and timeout failures.
"""

from __future__ import annotations

import asyncio
from enum import Enum


class EcoRefactorError(Exception):
    """Base class for all errors surfaced to the user."""

    user_message = "Operation failed. See output for details."

    def __init__(self, message: str = "", *, user_message: str | None = None) -> None:
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class ServerDown(EcoRefactorError):
    user_message = "Cannot refactor - backend service unavailable"


class BackendComputationError(EcoRefactorError):
    """Backend answered with a non-2xx status or a malformed payload."""

    user_message = "Refactoring failed. See output for details."

    def __init__(
        self,
        message: str = "",
        *,
        status_code: int | None = None,
        temp_dir: str | None = None,
        user_message: str | None = None,
    ) -> None:
        super().__init__(message, user_message=user_message)
        self.status_code = status_code
        # Set when a failed response still named a staging directory.
        self.temp_dir = temp_dir


class StaleTarget(EcoRefactorError):
    user_message = "File changed since last analysis. Re-run detection first."


class ExternalModificationConflict(EcoRefactorError):
    user_message = (
        "File was modified during review. Refactoring was not applied."
    )


class SessionBusy(EcoRefactorError):
    user_message = "A refactoring is already in progress."


class FilesystemError(EcoRefactorError):
    user_message = "Failed to apply refactoring. Please try again."


class CommitBookkeepingError(EcoRefactorError):
    """Files were replaced, but cache or metrics could not be updated."""

    user_message = (
        "Refactoring applied, but the smells cache could not be updated. "
        "Re-run detection."
    )


class DiffViewError(EcoRefactorError):
    user_message = "Could not open the refactoring preview. See output for details."


class WorkspaceNotConfigured(EcoRefactorError):
    user_message = "Please configure workspace first"


class SmellNotFound(EcoRefactorError):
    user_message = "Smell no longer present. Re-run detection."


class InvalidSessionState(EcoRefactorError):
    user_message = "No refactoring is awaiting review."


class ErrorClass(Enum):
    TRANSIENT = "transient"  # 429, network errors: retryable
    SERVER = "server"  # 500, 502, 503: retryable
    TIMEOUT = "timeout"  # deadline exceeded: retryable with backoff
    CLIENT = "client"  # 400, 401, 403, 404: do NOT retry
    UNKNOWN = "unknown"  # unclassified: do NOT retry


def classify_error(error: BaseException) -> ErrorClass:
    """Classify an error to determine handling strategy.

    Checks structured attributes first (status_code, httpx response),
    then exception types, and falls back to string matching.
    """
    # 1. Structured status code (our errors, httpx.HTTPStatusError)
    status_code = getattr(error, "status_code", None)
    if status_code is None:
        response = getattr(error, "response", None)
        status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        if status_code == 429:
            return ErrorClass.TRANSIENT
        if 400 <= status_code < 500:
            return ErrorClass.CLIENT
        if 500 <= status_code < 600:
            return ErrorClass.SERVER

    # Wrapped transport failures are classified by their cause
    if isinstance(error, EcoRefactorError) and error.__cause__ is not None:
        return classify_error(error.__cause__)

    # 2. Timeout and connection types
    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return ErrorClass.TIMEOUT
    if isinstance(error, (ConnectionError, OSError)) and not isinstance(
        error, FileNotFoundError
    ):
        return ErrorClass.TRANSIENT

    # 3. Fall back to string matching (httpx transport errors etc.)
    msg = str(error).lower()
    name = type(error).__name__.lower()

    if "timeout" in msg or "timed out" in msg or "timeout" in name:
        return ErrorClass.TIMEOUT
    if "connect" in name or "connection" in msg or "econnrefused" in msg:
        return ErrorClass.TRANSIENT
    if any(code in msg for code in ("500", "502", "503", "504")):
        return ErrorClass.SERVER

    return ErrorClass.UNKNOWN


_RETRYABLE = frozenset({
    ErrorClass.TRANSIENT,
    ErrorClass.SERVER,
    ErrorClass.TIMEOUT,
})


def is_retryable(error: BaseException) -> bool:
    """Return True if the error category supports retry."""
    return classify_error(error) in _RETRYABLE
