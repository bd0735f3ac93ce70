"""EventBroadcaster implementation for in-process fan-out."""

import dataclasses
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Protocol

from ..logging_config import get_logger
from ..models import Event, EventKind, UserRole, new_event_id

logger = get_logger(__name__)


DeliveryCallback = Callable[[Event], None]

DEFAULT_HISTORY_LIMIT = 1000


class InvalidEventError(ValueError):
    """Raised by publish() for an event with an unrecognized kind or role."""


class IEventBroadcaster(Protocol):
    """In-memory pub/sub for domain events with a bounded replay buffer."""

    def publish(self, event: Event) -> Event:
        """Buffer the event and hand it to every registered channel."""
        ...

    def subscribe(self, channel_id: str, callback: DeliveryCallback) -> None:
        """Register a channel, replacing any callback under the same id."""
        ...

    def unsubscribe(self, channel_id: str) -> None:
        """Remove a channel; unknown ids are ignored."""
        ...

    def recent_events(self, limit: int = 50) -> list[Event]:
        """Most recent events, oldest first."""
        ...


class EventBroadcaster:
    """In-memory event broadcaster.

    Callbacks are invoked synchronously in registration order and must be
    non-blocking handoffs. The registry and history are guarded by one lock
    that is never held while a callback runs, so callbacks may subscribe or
    unsubscribe.
    """

    def __init__(self, history_limit: int = DEFAULT_HISTORY_LIMIT):
        if history_limit < 1:
            raise ValueError("history_limit must be positive")
        self._history: deque[Event] = deque(maxlen=history_limit)
        self._subscribers: dict[str, DeliveryCallback] = {}
        self._lock = threading.Lock()

    @property
    def history_limit(self) -> int:
        return self._history.maxlen

    @property
    def channel_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def channels(self) -> list[str]:
        """Registered channel ids in delivery order."""
        with self._lock:
            return list(self._subscribers)

    def publish(self, event: Event) -> Event:
        """Buffer the event and hand it to every registered channel."""
        event = self._validate(event)

        with self._lock:
            self._history.append(event)
            targets = list(self._subscribers.items())

        logger.debug(
            "Publishing %s to %d channel(s)",
            event.kind.value,
            len(targets),
            extra={"context": {"event_id": event.id}},
        )

        for channel_id, callback in targets:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Delivery to channel %s failed",
                    channel_id,
                    extra={
                        "context": {
                            "event_id": event.id,
                            "channel_id": channel_id,
                            "kind": event.kind.value,
                        }
                    },
                )

        return event

    def subscribe(self, channel_id: str, callback: DeliveryCallback) -> None:
        """Register a channel, replacing any callback under the same id."""
        with self._lock:
            self._subscribers[channel_id] = callback
        logger.debug("Channel %s subscribed", channel_id)

    def unsubscribe(self, channel_id: str) -> None:
        """Remove a channel; unknown ids are ignored."""
        with self._lock:
            removed = self._subscribers.pop(channel_id, None)
        if removed is not None:
            logger.debug("Channel %s unsubscribed", channel_id)

    def recent_events(self, limit: int = 50) -> list[Event]:
        """Most recent events, oldest first."""
        if limit <= 0:
            return []
        with self._lock:
            history = list(self._history)
        return history[-limit:]

    def clear(self) -> None:
        """Drop the history buffer. Registrations are kept."""
        with self._lock:
            self._history.clear()

    @staticmethod
    def _validate(event: Event) -> Event:
        try:
            kind = EventKind(event.kind)
        except ValueError:
            raise InvalidEventError(f"Unknown event kind: {event.kind!r}") from None

        try:
            target_roles = tuple(UserRole(role) for role in event.target_roles)
            origin_role = UserRole(event.origin_role) if event.origin_role else None
        except ValueError as e:
            raise InvalidEventError(str(e)) from None

        changes = {
            "target_user_ids": tuple(event.target_user_ids),
            "target_roles": target_roles,
            "origin_role": origin_role,
        }
        if kind is not event.kind:
            changes["kind"] = kind
        if not event.id:
            changes["id"] = new_event_id()
        if event.occurred_at is None:
            changes["occurred_at"] = datetime.now(timezone.utc)
        return dataclasses.replace(event, **changes)
