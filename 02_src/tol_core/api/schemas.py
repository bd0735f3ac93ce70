"""Request and response models shared by the routers."""

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, Field

from ..models import CustomerStatus, Event, InvitationStatus, UserRole


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    role: UserRole
    created_at: datetime


class EventResponse(BaseModel):
    """A broadcast event as returned over HTTP."""

    id: str
    kind: str
    payload: dict[str, Any]
    occurred_at: datetime | None
    origin_user_id: str | None
    origin_role: UserRole | None
    target_user_ids: list[str]
    target_roles: list[UserRole]

    @classmethod
    def from_event(cls, event: Event) -> "EventResponse":
        return cls(**event.to_dict())


class InvitationResponse(BaseModel):
    id: str
    email: str
    role: UserRole
    invited_by: str | None
    status: InvitationStatus
    created_at: datetime
    accepted_at: datetime | None = None


class CustomerResponse(BaseModel):
    id: str
    name: str
    email: str
    company: str | None
    status: CustomerStatus
    assigned_to: str | None
    created_at: datetime
    updated_at: datetime


class ActivityResponse(BaseModel):
    id: str
    kind: str
    actor_id: str | None
    actor_role: str | None
    data: dict[str, Any]
    occurred_at: datetime


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

EmailAddress = Annotated[str, Field(pattern=EMAIL_PATTERN, max_length=254)]
