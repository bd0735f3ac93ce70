"""Tree of Life Agency event core."""

from .app import Application, IApplication
from .broadcaster import (
    ChannelMembership,
    EventBroadcaster,
    IEventBroadcaster,
    InvalidEventError,
    should_deliver,
)
from .models import Actor, Event, EventKind, UserRole
from .realtime import ConnectionHub
from .recorder import ActivityRecorder, IActivityRecorder
from .storage import IStorage, Storage

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "Actor",
    "Event",
    "EventKind",
    "UserRole",
    # Components
    "EventBroadcaster",
    "IEventBroadcaster",
    "InvalidEventError",
    "ChannelMembership",
    "should_deliver",
    "ConnectionHub",
    "ActivityRecorder",
    "IActivityRecorder",
    "IStorage",
    "Storage",
]
