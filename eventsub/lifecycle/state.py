"""Listener lifecycle state management."""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from eventsub.domain.correlation_id import CorrelationLoggerAdapter

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("eventsub.lifecycle"), {})


class ListenerState(Enum):
    """States a listener moves through between construction and cancellation."""

    SETUP = "setup"
    WAITING = "waiting"
    READY = "ready"
    FAILED = "failed"
    CANCELLED = "cancelled"


_ALLOWED_TRANSITIONS = {
    ListenerState.SETUP: {
        ListenerState.READY,
        ListenerState.WAITING,
        ListenerState.FAILED,
        ListenerState.CANCELLED,
    },
    ListenerState.WAITING: {
        ListenerState.WAITING,
        ListenerState.READY,
        ListenerState.FAILED,
        ListenerState.CANCELLED,
    },
    ListenerState.READY: {
        ListenerState.WAITING,
        ListenerState.FAILED,
        ListenerState.CANCELLED,
    },
    ListenerState.FAILED: {ListenerState.CANCELLED},
    ListenerState.CANCELLED: set(),
}


@dataclass(frozen=True)
class ListenerStatus:
    """A listener state plus the error that caused it, for WAITING and FAILED."""

    state: ListenerState
    error: Optional[BaseException] = None


class ListenerLifecycle:
    """Tracks the listener state machine and the stop request flag."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._status = ListenerStatus(ListenerState.SETUP)

    @property
    def status(self) -> ListenerStatus:
        with self._lock:
            return self._status

    @property
    def state(self) -> ListenerState:
        return self.status.state

    def can_transition(self, state: ListenerState) -> bool:
        with self._lock:
            return state in _ALLOWED_TRANSITIONS[self._status.state]

    def transition(
        self, state: ListenerState, error: Optional[BaseException] = None
    ) -> ListenerStatus:
        """Move to ``state``, raising RuntimeError for a transition not allowed."""
        with self._lock:
            previous = self._status.state
            if state not in _ALLOWED_TRANSITIONS[previous]:
                raise RuntimeError(
                    f"Invalid listener transition {previous.value} -> {state.value}"
                )
            self._status = ListenerStatus(state, error)
            status = self._status
        LIFECYCLE_LOGGER.info(
            "Listener state changed",
            extra={
                "event": "listener_state_changed",
                "from_state": previous.value,
                "to_state": state.value,
                "error_type": type(error).__name__ if error is not None else None,
            },
        )
        return status

    def should_stop(self) -> bool:
        """Check if the event loop has been asked to stop."""
        return self._stop_event.is_set()

    def request_stop(self) -> None:
        self._stop_event.set()
