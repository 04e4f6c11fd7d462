"""Backend collaborator: HTTP client, wire schemas, health and log stream."""

from ecorefactor.backend.client import BackendClient
from ecorefactor.backend.health import HealthPoller
from ecorefactor.backend.log_stream import LogStreamReconnector
from ecorefactor.backend.schemas import (
    ChangedFile,
    Occurrence,
    RefactoredData,
    Smell,
)

__all__ = [
    "BackendClient",
    "ChangedFile",
    "HealthPoller",
    "LogStreamReconnector",
    "Occurrence",
    "RefactoredData",
    "Smell",
]
