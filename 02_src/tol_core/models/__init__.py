"""Core data models for the Tree of Life event core."""

from .crm import (
    Activity,
    Actor,
    Customer,
    CustomerStatus,
    Invitation,
    InvitationStatus,
    User,
)
from .events import Event, EventKind, new_event_id
from .roles import ADMIN_ROLES, ROLE_HIERARCHY, UserRole

__all__ = [
    # Events
    "Event",
    "EventKind",
    "new_event_id",
    # Roles
    "UserRole",
    "ROLE_HIERARCHY",
    "ADMIN_ROLES",
    # Portal entities
    "Actor",
    "User",
    "Invitation",
    "InvitationStatus",
    "Customer",
    "CustomerStatus",
    "Activity",
]
