"""SQLite storage implementation."""

import json
from datetime import datetime
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import (
    Activity,
    Customer,
    CustomerStatus,
    Invitation,
    InvitationStatus,
    User,
    UserRole,
)


class DuplicateEmailError(Exception):
    """A user with this email already exists."""


class IStorage(Protocol):
    """Persistent storage for portal entities and the activity feed (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Users
    async def create_user(self, user: User) -> None:
        """Insert a user; raises DuplicateEmailError if the email is taken."""
        ...

    async def get_user(self, user_id: str) -> User | None:
        """Get a user by ID."""
        ...

    async def get_user_by_email(self, email: str) -> User | None:
        """Get a user by email."""
        ...

    async def update_user_role(self, user_id: str, role: UserRole) -> User | None:
        """Change a user's role, returning the updated user."""
        ...

    # Invitations
    async def save_invitation(self, invitation: Invitation) -> None:
        """Insert or replace an invitation."""
        ...

    async def get_invitation(self, invitation_id: str) -> Invitation | None:
        """Get an invitation by ID."""
        ...

    async def list_invitations(
        self, status: InvitationStatus | None = None
    ) -> list[Invitation]:
        """List invitations, newest first."""
        ...

    # Customers
    async def save_customer(self, customer: Customer) -> None:
        """Insert or replace a customer."""
        ...

    async def get_customer(self, customer_id: str) -> Customer | None:
        """Get a customer by ID."""
        ...

    async def list_customers(self, assigned_to: str | None = None) -> list[Customer]:
        """List customers, optionally only those assigned to an agent."""
        ...

    # Activities
    async def save_activity(self, activity: Activity) -> None:
        """Save an activity-feed entry."""
        ...

    async def get_activities(
        self,
        limit: int = 100,
        kind: str | None = None,
        actor_id: str | None = None,
    ) -> list[Activity]:
        """Get activities with optional filters (newest first)."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # Users
    async def create_user(self, user: User) -> None:
        """Insert a user; raises DuplicateEmailError if the email is taken."""
        conn = self._require_conn()

        try:
            await conn.execute(
                """
                INSERT INTO users (id, email, name, role, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user.id, user.email, user.name, user.role.value, _ts(user.created_at)),
            )
        except aiosqlite.IntegrityError as e:
            raise DuplicateEmailError(user.email) from e
        await conn.commit()

    async def get_user(self, user_id: str) -> User | None:
        """Get a user by ID."""
        return await self._fetch_user("id", user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        """Get a user by email."""
        return await self._fetch_user("email", email)

    async def _fetch_user(self, column: str, value: str) -> User | None:
        conn = self._require_conn()

        cursor = await conn.execute(
            f"SELECT id, email, name, role, created_at FROM users WHERE {column} = ?",
            (value,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return User(
            id=row[0],
            email=row[1],
            name=row[2],
            role=UserRole(row[3]),
            created_at=_parse_ts(row[4]),
        )

    async def update_user_role(self, user_id: str, role: UserRole) -> User | None:
        """Change a user's role, returning the updated user."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "UPDATE users SET role = ? WHERE id = ?", (role.value, user_id)
        )
        await conn.commit()
        if cursor.rowcount == 0:
            return None
        return await self.get_user(user_id)

    # Invitations
    async def save_invitation(self, invitation: Invitation) -> None:
        """Insert or replace an invitation."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO invitations
            (id, email, role, invited_by, status, created_at, accepted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                invitation.id,
                invitation.email,
                invitation.role.value,
                invitation.invited_by,
                invitation.status.value,
                _ts(invitation.created_at),
                _ts(invitation.accepted_at),
            ),
        )
        await conn.commit()

    async def get_invitation(self, invitation_id: str) -> Invitation | None:
        """Get an invitation by ID."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, email, role, invited_by, status, created_at, accepted_at
            FROM invitations
            WHERE id = ?
            """,
            (invitation_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_invitation(row) if row else None

    async def list_invitations(
        self, status: InvitationStatus | None = None
    ) -> list[Invitation]:
        """List invitations, newest first."""
        conn = self._require_conn()

        if status:
            cursor = await conn.execute(
                """
                SELECT id, email, role, invited_by, status, created_at, accepted_at
                FROM invitations
                WHERE status = ?
                ORDER BY created_at DESC
                """,
                (status.value,),
            )
        else:
            cursor = await conn.execute(
                """
                SELECT id, email, role, invited_by, status, created_at, accepted_at
                FROM invitations
                ORDER BY created_at DESC
                """
            )

        rows = await cursor.fetchall()
        return [self._row_to_invitation(row) for row in rows]

    @staticmethod
    def _row_to_invitation(row) -> Invitation:
        return Invitation(
            id=row[0],
            email=row[1],
            role=UserRole(row[2]),
            invited_by=row[3],
            status=InvitationStatus(row[4]),
            created_at=_parse_ts(row[5]),
            accepted_at=_parse_ts(row[6]),
        )

    # Customers
    async def save_customer(self, customer: Customer) -> None:
        """Insert or replace a customer."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO customers
            (id, name, email, company, status, assigned_to, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                customer.id,
                customer.name,
                customer.email,
                customer.company,
                customer.status.value,
                customer.assigned_to,
                _ts(customer.created_at),
                _ts(customer.updated_at),
            ),
        )
        await conn.commit()

    async def get_customer(self, customer_id: str) -> Customer | None:
        """Get a customer by ID."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, name, email, company, status, assigned_to, created_at, updated_at
            FROM customers
            WHERE id = ?
            """,
            (customer_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_customer(row) if row else None

    async def list_customers(self, assigned_to: str | None = None) -> list[Customer]:
        """List customers, optionally only those assigned to an agent."""
        conn = self._require_conn()

        query = """
            SELECT id, name, email, company, status, assigned_to, created_at, updated_at
            FROM customers
        """
        params: list = []
        if assigned_to:
            query += " WHERE assigned_to = ?"
            params.append(assigned_to)
        query += " ORDER BY created_at DESC"

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return [self._row_to_customer(row) for row in rows]

    @staticmethod
    def _row_to_customer(row) -> Customer:
        return Customer(
            id=row[0],
            name=row[1],
            email=row[2],
            company=row[3],
            status=CustomerStatus(row[4]),
            assigned_to=row[5],
            created_at=_parse_ts(row[6]),
            updated_at=_parse_ts(row[7]),
        )

    # Activities
    async def save_activity(self, activity: Activity) -> None:
        """Save an activity-feed entry."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR IGNORE INTO activities
            (id, kind, actor_id, actor_role, data, occurred_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                activity.id,
                activity.kind,
                activity.actor_id,
                activity.actor_role,
                json.dumps(activity.data, default=str),
                _ts(activity.occurred_at),
            ),
        )
        await conn.commit()

    async def get_activities(
        self,
        limit: int = 100,
        kind: str | None = None,
        actor_id: str | None = None,
    ) -> list[Activity]:
        """Get activities with optional filters (newest first)."""
        conn = self._require_conn()

        # Build query dynamically
        conditions = []
        params: list = []

        if kind:
            conditions.append("kind = ?")
            params.append(kind)
        if actor_id:
            conditions.append("actor_id = ?")
            params.append(actor_id)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT id, kind, actor_id, actor_role, data, occurred_at
            FROM activities
            {where_clause}
            ORDER BY occurred_at DESC
            LIMIT ?
        """
        params.append(limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        return [
            Activity(
                id=row[0],
                kind=row[1],
                actor_id=row[2],
                actor_role=row[3],
                data=json.loads(row[4]),
                occurred_at=_parse_ts(row[5]),
            )
            for row in rows
        ]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        for table in ["activities", "customers", "invitations", "users"]:
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()
