"""Event system for the form engine.

This module provides the event record and event emitter used for audit
logging. Template authoring operations and wizard transitions emit a typed
FormEvent that is recorded in an append-only stream and dispatched to
subscribers.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from dateutil.parser import isoparse

from formengine.models import utc_now
from formengine.types import EventType, Submitter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormEvent:
    """A single event in the life of a template or a filling session.

    Attributes:
        event_id: Globally unique event identifier (e.g., "evt_01ab...")
        type: Event type from EventType enum
        subject_id: Id of the template or filling session the event relates to
        ts: UTC timestamp when the event occurred
        actor: Optional submitter who triggered the event
        payload: Optional event-specific data (e.g., field id, step indexes)

    Examples:
        >>> from datetime import datetime, timezone
        >>> event = FormEvent(
        ...     event_id="evt_001",
        ...     type=EventType.FIELD_ADDED,
        ...     subject_id="tpl_001",
        ...     ts=datetime.now(timezone.utc),
        ...     payload={"fieldId": "fld_1"}
        ... )
    """
    event_id: str
    type: EventType
    subject_id: Optional[str]
    ts: datetime
    actor: Optional[Submitter] = None
    payload: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if isinstance(self.type, str) and not isinstance(self.type, EventType):
            object.__setattr__(self, "type", EventType(self.type))

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization.

        Returns:
            Dictionary with all event fields, suitable for JSON serialization.
            Timestamp is formatted as ISO 8601 string.
        """
        result: Dict[str, Any] = {
            "eventId": self.event_id,
            "type": self.type.value,
            "subjectId": self.subject_id,
            "ts": self.ts.isoformat(),
        }
        if self.actor is not None:
            result["actor"] = self.actor.to_dict()
        if self.payload is not None:
            result["payload"] = self.payload
        return result

    def to_jsonl(self) -> str:
        """Convert event to a single line of JSON for an append-only log."""
        return json.dumps(self.to_dict(), separators=(',', ':'), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormEvent":
        """Create FormEvent from dictionary."""
        actor = data.get("actor")
        return cls(
            event_id=data["eventId"],
            type=EventType(data["type"]),
            subject_id=data.get("subjectId"),
            ts=isoparse(data["ts"]),
            actor=Submitter.from_dict(actor) if actor else None,
            payload=data.get("payload"),
        )


def make_event(
    event_type: EventType,
    subject_id: Optional[str],
    actor: Optional[Submitter] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> FormEvent:
    """Build a new event stamped with a fresh id and the current time."""
    return FormEvent(
        event_id=f"evt_{uuid.uuid4().hex[:16]}",
        type=event_type,
        subject_id=subject_id,
        ts=utc_now(),
        actor=actor,
        payload=payload,
    )


EventListener = Callable[[FormEvent], None]
"""Type alias for event listener callbacks.

Event listeners are called synchronously when events are emitted.
"""


class EventEmitter:
    """Event emitter for managing event listeners and dispatching events.

    Features:
    - Type-specific subscriptions (listen to specific event types)
    - Wildcard subscriptions (listen to all events)
    - Synchronous dispatch (listeners called in registration order)
    - Error isolation (a failing listener is logged and does not affect others)

    Examples:
        >>> emitter = EventEmitter()
        >>> seen = []
        >>> emitter.on(EventType.FIELD_ADDED, seen.append)
        >>> emitter.emit(make_event(EventType.FIELD_ADDED, "tpl_1"))
        >>> len(seen)
        1
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[EventListener]] = {}
        self._any_listeners: List[EventListener] = []

    def on(self, event_type: EventType, listener: EventListener) -> None:
        """Subscribe to a specific event type."""
        self._listeners.setdefault(event_type, []).append(listener)

    def on_any(self, listener: EventListener) -> None:
        """Subscribe to all event types (wildcard subscription)."""
        self._any_listeners.append(listener)

    def off(self, event_type: EventType, listener: EventListener) -> None:
        """Unsubscribe from a specific event type; unknown listeners are ignored."""
        listeners = self._listeners.get(event_type)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def off_any(self, listener: EventListener) -> None:
        """Unsubscribe from wildcard subscription; unknown listeners are ignored."""
        if listener in self._any_listeners:
            self._any_listeners.remove(listener)

    def emit(self, event: FormEvent) -> None:
        """Dispatch an event to all registered listeners.

        Listeners are called synchronously in registration order:
        1. Type-specific listeners for this event type
        2. Wildcard listeners (subscribed to all events)

        A listener that raises is logged and skipped so that the caller and
        the remaining listeners are unaffected.
        """
        for listener in list(self._listeners.get(event.type, [])) + list(self._any_listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed for %s (%s)", event.type.value, event.event_id)

    def clear(self) -> None:
        """Remove all event listeners."""
        self._listeners.clear()
        self._any_listeners.clear()

    def listener_count(self, event_type: Optional[EventType] = None) -> int:
        """Count registered listeners, for one type or overall."""
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return len(self._any_listeners) + sum(len(v) for v in self._listeners.values())


__all__ = [
    "FormEvent",
    "EventListener",
    "EventEmitter",
    "make_event",
]
