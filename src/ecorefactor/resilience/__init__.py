"""Error taxonomy, retry policies, and in-flight deduplication."""

from ecorefactor.resilience.errors import (
    BackendComputationError,
    EcoRefactorError,
    ErrorClass,
    ExternalModificationConflict,
    FilesystemError,
    InvalidSessionState,
    ServerDown,
    SessionBusy,
    SmellNotFound,
    StaleTarget,
    WorkspaceNotConfigured,
    classify_error,
    is_retryable,
)
from ecorefactor.resilience.retry import RetryPolicy
from ecorefactor.resilience.single_flight import SingleFlight

__all__ = [
    "BackendComputationError",
    "EcoRefactorError",
    "ErrorClass",
    "ExternalModificationConflict",
    "FilesystemError",
    "InvalidSessionState",
    "RetryPolicy",
    "ServerDown",
    "SessionBusy",
    "SingleFlight",
    "SmellNotFound",
    "StaleTarget",
    "WorkspaceNotConfigured",
    "classify_error",
    "is_retryable",
]
