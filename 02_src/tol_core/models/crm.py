"""Persisted portal entities."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .roles import UserRole


class InvitationStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"


class CustomerStatus(str, Enum):
    LEAD = "LEAD"
    PROSPECT = "PROSPECT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


@dataclass
class Actor:
    """The authenticated caller of a request."""

    user_id: str
    role: UserRole


@dataclass
class User:
    """A portal user."""

    id: str
    email: str
    name: str
    role: UserRole
    created_at: datetime


@dataclass
class Invitation:
    """An invitation to join the portal with a given role."""

    id: str
    email: str
    role: UserRole
    invited_by: str | None
    status: InvitationStatus
    created_at: datetime
    accepted_at: datetime | None = None


@dataclass
class Customer:
    """A CRM customer record."""

    id: str
    name: str
    email: str
    company: str | None
    status: CustomerStatus
    assigned_to: str | None
    created_at: datetime
    updated_at: datetime


@dataclass
class Activity:
    """A persisted activity-feed entry, recorded from broadcast events."""

    id: str
    kind: str
    actor_id: str | None
    actor_role: str | None
    data: dict
    occurred_at: datetime
