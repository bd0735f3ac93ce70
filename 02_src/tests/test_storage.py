"""Tests for Storage."""

from datetime import datetime, timedelta, timezone

import pytest

from tol_core.models import (
    Activity,
    Customer,
    CustomerStatus,
    Invitation,
    InvitationStatus,
    User,
    UserRole,
)
from tol_core.storage import DuplicateEmailError, Storage


def make_user(user_id: str = "user1", email: str = "ada@example.com") -> User:
    return User(
        id=user_id,
        email=email,
        name="Ada",
        role=UserRole.CLIENT,
        created_at=datetime.now(timezone.utc),
    )


def make_customer(customer_id: str = "c1", assigned_to: str | None = None) -> Customer:
    now = datetime.now(timezone.utc)
    return Customer(
        id=customer_id,
        name="Acme",
        email="ops@acme.test",
        company="Acme Inc",
        status=CustomerStatus.LEAD,
        assigned_to=assigned_to,
        created_at=now,
        updated_at=now,
    )


class TestStorageInit:
    """Tests for Storage initialization."""

    async def test_init_creates_tables(self, storage):
        """Test that init creates all tables."""
        async with storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = [row[0] for row in await cursor.fetchall()]
        for table in ["users", "invitations", "customers", "activities"]:
            assert table in tables

    async def test_uninitialized_storage_raises(self):
        st = Storage(":memory:")
        with pytest.raises(RuntimeError, match="not initialized"):
            await st.get_user("user1")

    async def test_close_resets_connection(self):
        st = Storage(":memory:")
        await st.init()
        await st.close()
        assert st._conn is None


class TestStorageUsers:
    """Tests for User storage."""

    async def test_create_and_get_user(self, storage):
        user = make_user()
        await storage.create_user(user)

        retrieved = await storage.get_user("user1")
        assert retrieved == user

    async def test_get_user_by_email(self, storage):
        await storage.create_user(make_user())
        retrieved = await storage.get_user_by_email("ada@example.com")
        assert retrieved is not None
        assert retrieved.id == "user1"

    async def test_duplicate_email(self, storage):
        await storage.create_user(make_user("user1"))
        with pytest.raises(DuplicateEmailError):
            await storage.create_user(make_user("user2"))

    async def test_get_nonexistent_user(self, storage):
        assert await storage.get_user("nonexistent") is None

    async def test_update_user_role(self, storage):
        await storage.create_user(make_user())
        updated = await storage.update_user_role("user1", UserRole.AGENT)
        assert updated.role is UserRole.AGENT

    async def test_update_role_of_missing_user(self, storage):
        assert await storage.update_user_role("ghost", UserRole.AGENT) is None


class TestStorageInvitations:
    """Tests for Invitation storage."""

    async def test_save_and_get(self, storage):
        invitation = Invitation(
            id="inv1",
            email="bob@example.com",
            role=UserRole.AGENT,
            invited_by="admin1",
            status=InvitationStatus.PENDING,
            created_at=datetime.now(timezone.utc),
        )
        await storage.save_invitation(invitation)

        assert await storage.get_invitation("inv1") == invitation

    async def test_list_by_status(self, storage):
        now = datetime.now(timezone.utc)
        for n, status in enumerate([InvitationStatus.PENDING, InvitationStatus.ACCEPTED]):
            await storage.save_invitation(
                Invitation(
                    id=f"inv{n}",
                    email=f"p{n}@example.com",
                    role=UserRole.CLIENT,
                    invited_by="admin1",
                    status=status,
                    created_at=now + timedelta(seconds=n),
                    accepted_at=now if status is InvitationStatus.ACCEPTED else None,
                )
            )

        pending = await storage.list_invitations(InvitationStatus.PENDING)
        everything = await storage.list_invitations()

        assert [i.id for i in pending] == ["inv0"]
        assert [i.id for i in everything] == ["inv1", "inv0"]


class TestStorageCustomers:
    """Tests for Customer storage."""

    async def test_save_and_get(self, storage):
        customer = make_customer()
        await storage.save_customer(customer)
        assert await storage.get_customer("c1") == customer

    async def test_save_replaces(self, storage):
        customer = make_customer()
        await storage.save_customer(customer)
        customer.status = CustomerStatus.ACTIVE
        await storage.save_customer(customer)

        retrieved = await storage.get_customer("c1")
        assert retrieved.status is CustomerStatus.ACTIVE

    async def test_list_assigned(self, storage):
        await storage.save_customer(make_customer("c1", assigned_to="agent1"))
        await storage.save_customer(make_customer("c2", assigned_to="agent2"))

        mine = await storage.list_customers(assigned_to="agent1")
        assert [c.id for c in mine] == ["c1"]
        assert len(await storage.list_customers()) == 2


class TestStorageActivities:
    """Tests for Activity storage."""

    async def test_filters_and_order(self, storage):
        base = datetime.now(timezone.utc)
        for n, (kind, actor) in enumerate(
            [("activity_update", "u1"), ("crm_update", "u2"), ("activity_update", "u2")]
        ):
            await storage.save_activity(
                Activity(
                    id=f"a{n}",
                    kind=kind,
                    actor_id=actor,
                    actor_role="AGENT",
                    data={"n": n},
                    occurred_at=base + timedelta(seconds=n),
                )
            )

        assert [a.id for a in await storage.get_activities()] == ["a2", "a1", "a0"]
        assert [a.id for a in await storage.get_activities(kind="crm_update")] == ["a1"]
        assert [a.id for a in await storage.get_activities(actor_id="u2")] == ["a2", "a1"]
        assert [a.id for a in await storage.get_activities(limit=1)] == ["a2"]

    async def test_clear(self, storage):
        await storage.create_user(make_user())
        await storage.save_customer(make_customer())
        await storage.clear()

        assert await storage.get_user("user1") is None
        assert await storage.list_customers() == []
