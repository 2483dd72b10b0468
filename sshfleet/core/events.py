"""
State-change feed for UI collaborators
"""
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional

from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Event:
    """
    Event record

    name is dotted, e.g. "server.added", "server.state_changed",
    "run.finished". metadata carries the affected value(s).
    """
    name: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


Subscriber = Callable[[Event], None]


class EventBus:
    """
    Synchronous observer channel.

    Subscribers are called on the publishing thread, in subscription order.
    A subscriber that raises is logged and skipped; it never breaks the
    operation that published the event.
    """

    def __init__(self, keep: int = 200):
        self._subscribers: List[Subscriber] = []
        self._events: Deque[Event] = deque(maxlen=keep)
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register callback, returns a function that unsubscribes it"""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, name: str, **metadata: Any) -> Event:
        event = Event(name=name, metadata=metadata)
        with self._lock:
            self._events.append(event)
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(f"Event subscriber failed on {name}")
        return event

    def get_events(self, name: Optional[str] = None) -> List[Event]:
        """Recent events, optionally filtered by name"""
        with self._lock:
            events = list(self._events)
        if name is None:
            return events
        return [e for e in events if e.name == name]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
