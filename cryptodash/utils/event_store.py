"""In-memory event store for upstream calls, cache lookups and refresh cycles."""

import threading
import uuid
from collections import deque
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

from cryptodash.utils.trace_context import get_current_trace

UPSTREAM_CALL = "upstream_call"
CACHE_LOOKUP = "cache_lookup"
REFRESH_COMPLETE = "refresh_complete"


@dataclass
class Event:
    """Represents a system event."""

    id: str
    timestamp: str
    trace_id: str | None
    event_type: str
    component: str
    message: str
    context: dict[str, Any]
    duration_ms: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary, excluding None values."""
        result = asdict(self)
        return {k: v for k, v in result.items() if v is not None}


class EventStore:
    """Bounded in-memory event store; the oldest events fall off once full."""

    def __init__(self, max_size: int = 10000):
        self.max_size = max_size
        self._events: deque = deque(maxlen=max_size)
        self._lock = threading.RLock()

    def add_event(
        self,
        event_type: str,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
        duration_ms: float | None = None,
        trace_id: str | None = None,
    ) -> Event:
        """
        Add an event to the store.

        Args:
            event_type: Type of event (upstream_call, cache_lookup, refresh_complete)
            component: Component that generated the event
            message: Event message
            context: Optional context fields
            duration_ms: Optional duration in milliseconds
            trace_id: Trace ID for this event (defaults to the current trace)

        Returns:
            The created Event object
        """
        with self._lock:
            event = Event(
                id=str(uuid.uuid4()),
                timestamp=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
                trace_id=trace_id or get_current_trace(),
                event_type=event_type,
                component=component,
                message=message,
                context=context or {},
                duration_ms=duration_ms,
            )
            self._events.append(event)
            return event

    def get_recent_events(self, limit: int = 100) -> list[Event]:
        """Get the most recent events, oldest first."""
        with self._lock:
            events_list = list(self._events)
            return events_list[-limit:] if limit > 0 else []

    def get_events_by_type(self, event_type: str, limit: int = 100) -> list[Event]:
        with self._lock:
            matching_events = [event for event in self._events if event.event_type == event_type]
            return matching_events[-limit:] if limit > 0 else []

    def clear(self) -> None:
        """Clear all events from the store."""
        with self._lock:
            self._events.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._events)

    def get_all_events(self) -> list[Event]:
        """Return all events in chronological order."""
        with self._lock:
            return list(self._events)
