"""User roles and the permission hierarchy."""

from enum import Enum


class UserRole(str, Enum):
    """Portal roles, lowest privilege first."""

    CLIENT = "CLIENT"
    AGENT = "AGENT"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"
    DEVELOPER = "DEVELOPER"

    @classmethod
    def parse(cls, value) -> "UserRole":
        """Case-insensitive lookup; raises ValueError for unknown roles."""
        if not isinstance(value, str):
            raise ValueError(f"Unknown role: {value!r}")
        return cls(value.strip().upper())

    @property
    def level(self) -> int:
        return ROLE_HIERARCHY[self]

    def at_least(self, other: "UserRole") -> bool:
        return self.level >= other.level


ROLE_HIERARCHY = {
    UserRole.CLIENT: 1,
    UserRole.AGENT: 2,
    UserRole.ADMIN: 3,
    UserRole.SUPER_ADMIN: 4,
    UserRole.DEVELOPER: 5,
}

# Audience of system notifications
ADMIN_ROLES = (UserRole.ADMIN, UserRole.SUPER_ADMIN, UserRole.DEVELOPER)
