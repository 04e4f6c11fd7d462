"""Shared constants: single source of truth for cross-module values.

All magic strings and numbers that appear in 2+ files belong here.
StrEnum members are str-compatible, so downstream code (JSON payloads,
workspace-store values, log lines) works unchanged.
"""

from __future__ import annotations

from enum import StrEnum

# ── String Enums ─────────────────────────────────────────


class RuleKind(StrEnum):
    """Closed set of rule symbols the backend may report.

    Decoding a smell with a symbol outside this set is an error, so a
    backend that starts emitting a new rule fails loudly instead of
    falling through to a default branch.
    """

    CACHED_REPEATED_CALLS = "cached-repeated-calls"
    LONG_ELEMENT_CHAIN = "long-element-chain"
    LONG_LAMBDA_EXPRESSION = "long-lambda-expression"
    LONG_MESSAGE_CHAIN = "long-message-chain"
    STRING_CONCAT_LOOP = "string-concat-loop"
    TOO_MANY_ARGUMENTS = "too-many-arguments"
    USE_A_GENERATOR = "use-a-generator"
    NO_SELF_USE = "no-self-use"
    UNUSED_VARIABLES_AND_ATTRIBUTES = "unused-variables-and-attributes"


class Freshness(StrEnum):
    """Whether a cached FileRecord still matches the file on disk."""

    FRESH = "fresh"
    OUTDATED = "outdated"
    UNKNOWN = "unknown"


class RefactorMode(StrEnum):
    """Refactor a single smell or every smell of the same rule."""

    SINGLE = "single"
    ALL_OF_TYPE = "all_of_type"


class SessionState(StrEnum):
    """Refactor session lifecycle states."""

    IDLE = "idle"
    REQUESTING = "requesting"
    AWAITING_REVIEW = "awaiting_review"
    COMMITTING = "committing"
    ROLLING_BACK = "rolling_back"
    COMMITTED = "committed"
    FAILED = "failed"
    DISCARDED = "discarded"


TERMINAL_STATES = frozenset({
    SessionState.COMMITTED,
    SessionState.FAILED,
    SessionState.DISCARDED,
})


class ServerStatus(StrEnum):
    """Backend liveness as last observed by the health poller."""

    UNKNOWN = "unknown"
    UP = "up"
    DOWN = "down"


class FileStatus(StrEnum):
    """UI-facing status of a file, derived by the status projector."""

    UNANALYZED = "unanalyzed"
    CLEAN = "clean"
    HAS_SMELLS = "has_smells"
    OUTDATED = "outdated"
    QUEUED = "queued"
    AWAITING_REVIEW = "awaiting_review"
    FAILED = "failed"
    SERVER_DOWN = "server_down"


STATUS_LABELS: dict[FileStatus, str] = {
    FileStatus.UNANALYZED: "Smells Not Yet Detected",
    FileStatus.CLEAN: "No Smells Found",
    FileStatus.HAS_SMELLS: "Smells Successfully Detected",
    FileStatus.OUTDATED: "File Outdated - Needs Reanalysis",
    FileStatus.QUEUED: "Analyzing Smells",
    FileStatus.AWAITING_REVIEW: "Refactoring Awaiting Review",
    FileStatus.FAILED: "Error Processing File",
    FileStatus.SERVER_DOWN: "Server Unavailable",
}


# ── Workspace Store Keys ─────────────────────────────────

SMELL_CACHE_KEY = "smell_cache"
DIFF_SESSIONS_KEY = "diff_sessions"
METRICS_KEY = "workspace_metrics"
WORKSPACE_PATH_KEY = "workspace_configured_path"

# ── Identity ─────────────────────────────────────────────

SMELL_ID_HEX_LENGTH = 16
SESSION_ID_HEX_LENGTH = 12

# ── Circuit Breaker Configuration ────────────────────────

CB_DETECT_FAILURE_THRESHOLD = 5
CB_DETECT_RECOVERY_TIMEOUT = 30

# ── Retry Strategy ───────────────────────────────────────

HEALTH_RETRY_MAX_ATTEMPTS = 3
HEALTH_RETRY_BASE_DELAY = 1.0
HEALTH_RETRY_MULTIPLIER = 2.0
HEALTH_RETRY_MAX_DELAY = 10.0

LOG_STREAM_RETRY_MAX_ATTEMPTS = 5
LOG_STREAM_RETRY_BASE_DELAY = 1.0
LOG_STREAM_RETRY_MULTIPLIER = 2.0
LOG_STREAM_RETRY_MAX_DELAY = 30.0

# ── Files ────────────────────────────────────────────────

PYTHON_SUFFIX = ".py"
METRICS_EXPORT_FILENAME = "metrics-data.json"
STAGED_SUFFIX = ".staged"
SESSION_LOG_FILENAME = "sessions.log"

# ── Misc ─────────────────────────────────────────────────

ERROR_TRUNCATION_CHARS = 200
DIFF_TITLE_TEMPLATE = "Refactoring Comparison ({name})"
DETECT_SERVER_DOWN_MESSAGE = (
    "Backend server unavailable - using cached results where available"
)
