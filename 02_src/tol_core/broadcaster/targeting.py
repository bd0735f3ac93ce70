"""Delivery targeting: which channels receive an event."""

from dataclasses import dataclass, field

from ..models import Event, UserRole

USER_ROOM_PREFIX = "user:"
ROLE_ROOM_PREFIX = "role:"


@dataclass(frozen=True)
class ChannelMembership:
    """Users and roles a channel stands for."""

    user_ids: frozenset[str] = field(default_factory=frozenset)
    roles: frozenset[UserRole] = field(default_factory=frozenset)

    @classmethod
    def for_user(cls, user_id: str, role: UserRole | None = None) -> "ChannelMembership":
        return cls(
            user_ids=frozenset({user_id}),
            roles=frozenset({role}) if role else frozenset(),
        )


def should_deliver(event: Event, membership: ChannelMembership) -> bool:
    """User targets win over role targets; no targets means everyone."""
    if event.target_user_ids:
        return any(user_id in membership.user_ids for user_id in event.target_user_ids)
    if event.target_roles:
        return any(role in membership.roles for role in event.target_roles)
    return True


def user_room(user_id: str) -> str:
    return f"{USER_ROOM_PREFIX}{user_id}"


def role_room(role: UserRole) -> str:
    return f"{ROLE_ROOM_PREFIX}{role.value}"


def target_rooms(event: Event) -> list[str] | None:
    """Room names a targeted event goes to, or None for a global event."""
    if event.target_user_ids:
        return [user_room(user_id) for user_id in event.target_user_ids]
    if event.target_roles:
        return [role_room(role) for role in event.target_roles]
    return None


def rooms_for(membership: ChannelMembership) -> set[str]:
    """Rooms a channel with this membership belongs to."""
    rooms = {user_room(user_id) for user_id in membership.user_ids}
    rooms.update(role_room(role) for role in membership.roles)
    return rooms
