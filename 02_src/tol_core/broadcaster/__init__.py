"""EventBroadcaster module."""

from .broadcaster import (
    DEFAULT_HISTORY_LIMIT,
    DeliveryCallback,
    EventBroadcaster,
    IEventBroadcaster,
    InvalidEventError,
)
from .targeting import (
    ChannelMembership,
    role_room,
    rooms_for,
    should_deliver,
    target_rooms,
    user_room,
)

__all__ = [
    "DEFAULT_HISTORY_LIMIT",
    "DeliveryCallback",
    "EventBroadcaster",
    "IEventBroadcaster",
    "InvalidEventError",
    "ChannelMembership",
    "should_deliver",
    "target_rooms",
    "rooms_for",
    "user_room",
    "role_room",
]
