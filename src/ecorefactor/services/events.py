"""Shared event types for refactor-session progress reporting.

Kept apart from refactor_session.py so the extension and the CLI can
subscribe without importing the controller's collaborators.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from ecorefactor.constants import TERMINAL_STATES, SessionState


@dataclass(frozen=True)
class SessionEvent:
    """Typed event emitted on every session state transition."""

    session_id: str
    previous: SessionState
    current: SessionState
    target_path: str
    message: str = ""

    @property
    def terminal(self) -> bool:
        return self.current in TERMINAL_STATES


type SessionCallback = Callable[[SessionEvent], None]
