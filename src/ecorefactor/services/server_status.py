"""Backend liveness with explicit observer registration.

One ServerStatusMonitor is created per activation and passed by
reference to the health poller (writer) and to the refactor controller
and detection service (readers). ``close()`` drops every observer on
deactivation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from ecorefactor.constants import ServerStatus

logger = logging.getLogger(__name__)

type StatusObserver = Callable[[ServerStatus, ServerStatus], None]


class ServerStatusMonitor:
    """Holds the last observed ServerStatus and notifies on change.

    Observers receive ``(previous, current)``. Best-effort delivery:
    an observer error is logged, never raised into the poller.
    """

    def __init__(self) -> None:
        self._status = ServerStatus.UNKNOWN
        self._observers: list[StatusObserver] = []
        self._closed = False

    @property
    def status(self) -> ServerStatus:
        return self._status

    @property
    def is_down(self) -> bool:
        return self._status is ServerStatus.DOWN

    def subscribe(self, observer: StatusObserver) -> Callable[[], None]:
        """Register ``observer``; returns a callable that unsubscribes it."""
        if self._closed:
            raise RuntimeError("ServerStatusMonitor is closed")
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def set_status(self, status: ServerStatus) -> None:
        """Record ``status``; observers fire only on an actual change."""
        if status is self._status:
            return
        previous = self._status
        self._status = status
        logger.info(
            "event=server_status_changed from=%s to=%s", previous, status
        )
        for observer in list(self._observers):
            try:
                observer(previous, status)
            except Exception:
                logger.warning(
                    "event=status_observer_error observer=%r", observer
                )

    def close(self) -> None:
        self._observers.clear()
        self._closed = True

    @property
    def observer_count(self) -> int:
        return len(self._observers)
