"""Event-related data models."""

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .roles import UserRole

_ID_ALPHABET = string.ascii_lowercase + string.digits


class EventKind(str, Enum):
    """Domain occurrences the broadcaster fans out."""

    INVITATION_SENT = "invitation_sent"
    INVITATION_ACCEPTED = "invitation_accepted"
    USER_REGISTERED = "user_registered"
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    ROLE_CHANGED = "role_changed"
    SYSTEM_NOTIFICATION = "system_notification"
    ACTIVITY_UPDATE = "activity_update"
    CRM_UPDATE = "crm_update"


def new_event_id(prefix: str = "msg") -> str:
    """Time-based id with a random suffix, e.g. ``msg_1718000000000_k3j9x0a2b``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


@dataclass(frozen=True)
class Event:
    """An immutable record of a domain occurrence.

    ``id`` and ``occurred_at`` may be left empty; the broadcaster fills them
    at publish time.
    """

    kind: EventKind
    payload: dict[str, Any] = field(default_factory=dict)
    id: str = ""
    occurred_at: datetime | None = None
    origin_user_id: str | None = None
    origin_role: UserRole | None = None
    target_user_ids: tuple[str, ...] = ()
    target_roles: tuple[UserRole, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form sent to real-time clients."""
        return {
            "id": self.id,
            "kind": self.kind.value if isinstance(self.kind, EventKind) else self.kind,
            "payload": self.payload,
            "occurred_at": self.occurred_at.isoformat() if self.occurred_at else None,
            "origin_user_id": self.origin_user_id,
            "origin_role": self.origin_role.value if self.origin_role else None,
            "target_user_ids": list(self.target_user_ids),
            "target_roles": [role.value for role in self.target_roles],
        }
