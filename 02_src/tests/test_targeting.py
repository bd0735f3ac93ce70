"""Tests for delivery targeting."""

from tol_core.broadcaster import (
    ChannelMembership,
    rooms_for,
    should_deliver,
    target_rooms,
)
from tol_core.models import Event, EventKind, UserRole

ADMIN_CHANNEL = ChannelMembership.for_user("admin1", UserRole.ADMIN)
U42_CHANNEL = ChannelMembership.for_user("u42", UserRole.CLIENT)


class TestShouldDeliver:
    """Tests for should_deliver()."""

    def test_user_targets_take_precedence_over_roles(self):
        """With both target lists set, only the user rule applies."""
        event = Event(
            kind=EventKind.ROLE_CHANGED,
            target_user_ids=("u1",),
            target_roles=(UserRole.ADMIN,),
        )
        role_only = ChannelMembership(roles=frozenset({UserRole.ADMIN}))
        user_only = ChannelMembership(user_ids=frozenset({"u1"}))

        assert not should_deliver(event, role_only)
        assert should_deliver(event, user_only)

    def test_role_targets(self):
        event = Event(kind=EventKind.SYSTEM_NOTIFICATION, target_roles=(UserRole.ADMIN,))
        assert should_deliver(event, ADMIN_CHANNEL)
        assert not should_deliver(event, U42_CHANNEL)

    def test_any_listed_user_matches(self):
        event = Event(kind=EventKind.CRM_UPDATE, target_user_ids=("x", "u42"))
        assert should_deliver(event, U42_CHANNEL)

    def test_global_event_reaches_everyone(self):
        event = Event(kind=EventKind.SYSTEM_NOTIFICATION)
        assert should_deliver(event, ADMIN_CHANNEL)
        assert should_deliver(event, U42_CHANNEL)
        assert should_deliver(event, ChannelMembership())

    def test_no_matching_channel(self):
        event = Event(kind=EventKind.ROLE_CHANGED, target_user_ids=("nobody",))
        assert not should_deliver(event, ADMIN_CHANNEL)
        assert not should_deliver(event, U42_CHANNEL)


class TestRooms:
    """Tests for room naming."""

    def test_target_rooms_for_users(self):
        event = Event(kind=EventKind.ROLE_CHANGED, target_user_ids=("u1", "u2"))
        assert target_rooms(event) == ["user:u1", "user:u2"]

    def test_target_rooms_for_roles(self):
        event = Event(
            kind=EventKind.SYSTEM_NOTIFICATION,
            target_roles=(UserRole.ADMIN, UserRole.DEVELOPER),
        )
        assert target_rooms(event) == ["role:ADMIN", "role:DEVELOPER"]

    def test_target_rooms_global(self):
        assert target_rooms(Event(kind=EventKind.USER_LOGIN)) is None

    def test_rooms_for_membership(self):
        assert rooms_for(ADMIN_CHANNEL) == {"user:admin1", "role:ADMIN"}


class TestExampleScenario:
    """Role change to one user, then a global notification."""

    def test_targeted_then_global(self, broadcaster):
        received = {"A": [], "B": []}
        memberships = {"A": ADMIN_CHANNEL, "B": U42_CHANNEL}

        for name, membership in memberships.items():

            def deliver(event, name=name, membership=membership):
                if should_deliver(event, membership):
                    received[name].append(event.kind)

            broadcaster.subscribe(name, deliver)

        broadcaster.publish(Event(kind=EventKind.ROLE_CHANGED, target_user_ids=("u42",)))
        assert received == {"A": [], "B": [EventKind.ROLE_CHANGED]}

        broadcaster.publish(Event(kind=EventKind.SYSTEM_NOTIFICATION))
        assert received["A"] == [EventKind.SYSTEM_NOTIFICATION]
        assert received["B"] == [EventKind.ROLE_CHANGED, EventKind.SYSTEM_NOTIFICATION]

        recent = broadcaster.recent_events(1)
        assert [e.kind for e in recent] == [EventKind.SYSTEM_NOTIFICATION]
