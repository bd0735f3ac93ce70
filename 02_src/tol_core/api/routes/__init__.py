"""API route factories."""

from . import auth, crm, events, invitations, realtime, users

__all__ = ["auth", "crm", "events", "invitations", "realtime", "users"]
