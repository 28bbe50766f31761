"""Publishing of session change events to the transport layer."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from planning_poker.domain.events import SessionEvent

_logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionEvent], None]


class SessionEventPublisher(Protocol):
    """Sink for session change events."""

    def publish(self, event: SessionEvent) -> None:
        """Deliver an event to interested parties."""


@dataclass
class InMemoryEventBus(SessionEventPublisher):
    """Fan-out of events to in-process listeners.

    Listeners registered without a session id receive every event.
    """

    _listeners: list[tuple[str | None, SessionListener]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def subscribe(
        self, listener: SessionListener, session_id: str | None = None
    ) -> Callable[[], None]:
        """Register a listener and return a callable that removes it."""
        entry = (session_id, listener)
        with self._lock:
            self._listeners.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe

    def publish(self, event: SessionEvent) -> None:
        with self._lock:
            listeners = [
                listener
                for session_id, listener in self._listeners
                if session_id is None or session_id == event.session_id
            ]
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                _logger.exception(
                    "Session event listener failed",
                    extra={"session_id": event.session_id, "event_type": event.type},
                )
