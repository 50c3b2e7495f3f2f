"""Server lifecycle state management."""

import enum
import threading
import time
from typing import Optional

from dirserve.domain.connection_id import get_logger

LIFECYCLE_LOGGER = get_logger("lifecycle")


class LifecyclePhase(enum.Enum):
    """Coarse server state as seen by the accept loop."""

    ACCEPTING = "accepting"
    DRAINING = "draining"
    STOPPED = "stopped"


class ServerLifecycle:
    """Cancellation signal plus an in-flight connection count.

    The accept loop registers each connection before its worker starts and
    the worker releases it when done; shutdown waits for the count to reach
    zero. Running workers are never interrupted.
    """

    def __init__(self) -> None:
        self._stop_event = threading.Event()
        self._condition = threading.Condition()
        self._active = 0
        self._phase = LifecyclePhase.ACCEPTING

    def should_stop(self) -> bool:
        """Check if the server should stop accepting new connections."""
        return self._stop_event.is_set()

    @property
    def phase(self) -> LifecyclePhase:
        """Current lifecycle phase."""
        with self._condition:
            return self._phase

    def begin_draining(self) -> None:
        """Request graceful shutdown; safe to call from a signal handler."""
        if self._stop_event.is_set():
            return
        self._stop_event.set()
        LIFECYCLE_LOGGER.info(
            "Beginning graceful shutdown", extra={"event": "shutdown_requested"}
        )

    def mark_draining(self) -> None:
        """Record that the accept loop has stopped accepting."""
        with self._condition:
            self._phase = LifecyclePhase.DRAINING
            self._condition.notify_all()

    def register_connection(self) -> None:
        """Count a connection as in flight; called before its worker starts."""
        with self._condition:
            self._active += 1

    def release_connection(self) -> None:
        """Mark one in-flight connection as finished."""
        with self._condition:
            if self._active > 0:
                self._active -= 1
            if self._active == 0:
                self._condition.notify_all()

    def active_connection_count(self) -> int:
        """Return the number of connections still in flight."""
        with self._condition:
            return self._active

    def wait_for_connections(self, timeout: Optional[float] = None) -> bool:
        """Block until no connection is in flight.

        Returns ``False`` if ``timeout`` seconds pass first. On success the
        lifecycle moves to ``STOPPED`` once draining has begun.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._condition:
            while self._active > 0:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    LIFECYCLE_LOGGER.warning(
                        "Shutdown timeout exceeded",
                        extra={
                            "event": "shutdown_timeout",
                            "active_connections": self._active,
                        },
                    )
                    return False
                self._condition.wait(remaining)
            if self._phase is LifecyclePhase.DRAINING:
                self._phase = LifecyclePhase.STOPPED
            return True
