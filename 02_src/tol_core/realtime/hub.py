"""ConnectionHub: relays broadcaster events to WebSocket clients."""

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect, status

from ..broadcaster import ChannelMembership, IEventBroadcaster, rooms_for, should_deliver
from ..logging_config import get_logger
from ..models import ADMIN_ROLES, Event, EventKind, UserRole, new_event_id

logger = get_logger(__name__)

CHANNEL_PREFIX = "ws:"


class HandshakeError(Exception):
    """The client did not authenticate properly."""


@dataclass
class Connection:
    """One authenticated WebSocket session."""

    id: str
    user_id: str
    role: UserRole
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    replayed: tuple[Event, ...] = ()
    dropped: int = 0

    @property
    def channel_id(self) -> str:
        return f"{CHANNEL_PREFIX}{self.id}"

    @property
    def membership(self) -> ChannelMembership:
        return ChannelMembership.for_user(self.user_id, self.role)

    def offer(self, event: Event) -> None:
        """Broadcaster callback. Safe to call from any thread."""
        if not should_deliver(event, self.membership):
            return
        self.loop.call_soon_threadsafe(self._enqueue, event)

    def _enqueue(self, event: Event) -> None:
        # already sent in the recent_messages snapshot
        if any(event is seen for seen in self.replayed):
            return
        try:
            self.queue.put_nowait({"type": "message", "event": event.to_dict()})
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Outbound queue full, dropping event",
                extra={"context": {"connection_id": self.id, "event_id": event.id}},
            )


class ConnectionHub:
    """Groups WebSocket connections by user and role and feeds them events.

    Each connection is its own broadcaster channel; targeting is applied by
    the channel callback, so a connection only ever queues what it may see.
    """

    def __init__(
        self,
        broadcaster: IEventBroadcaster,
        recent_limit: int = 10,
        queue_size: int = 100,
    ):
        self._broadcaster = broadcaster
        self._recent_limit = recent_limit
        self._queue_size = queue_size
        self._connections: dict[str, Connection] = {}
        self._user_connections: dict[str, set[str]] = {}

    async def serve(self, websocket: WebSocket) -> None:
        """Run the full session: handshake, catch-up, relay, cleanup."""
        await websocket.accept()

        try:
            user_id, role = await self._handshake(websocket)
        except HandshakeError as e:
            logger.info("Rejected WebSocket handshake: %s", e)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(e))
            return
        except WebSocketDisconnect:
            return

        conn = self._register(user_id, role)
        sender: asyncio.Task | None = None
        try:
            self._broadcaster.subscribe(conn.channel_id, conn.offer)

            recent = [
                event
                for event in self._broadcaster.recent_events(self._recent_limit)
                if should_deliver(event, conn.membership)
            ]
            conn.replayed = tuple(recent)

            await websocket.send_json(
                {
                    "type": "connected",
                    "connection_id": conn.id,
                    "user_id": user_id,
                    "role": role.value,
                    "rooms": sorted(rooms_for(conn.membership)),
                }
            )
            await websocket.send_json(
                {"type": "recent_messages", "events": [e.to_dict() for e in recent]}
            )

            sender = asyncio.create_task(self._send_loop(websocket, conn))
            await self._receive_loop(websocket, conn)
        except WebSocketDisconnect:
            pass
        finally:
            self._broadcaster.unsubscribe(conn.channel_id)
            if sender:
                sender.cancel()
                try:
                    await sender
                except asyncio.CancelledError:
                    pass
            self._unregister(conn)

    async def _handshake(self, websocket: WebSocket) -> tuple[str, UserRole]:
        try:
            data = json.loads(await websocket.receive_text())
        except ValueError:
            raise HandshakeError("Malformed JSON") from None

        if not isinstance(data, dict) or data.get("type") != "authenticate":
            raise HandshakeError("Authentication required")

        user_id = data.get("user_id")
        if not user_id or not isinstance(user_id, str):
            raise HandshakeError("user_id is required")

        try:
            role = UserRole.parse(data.get("role"))
        except ValueError:
            raise HandshakeError(f"Unknown role: {data.get('role')!r}") from None

        return user_id, role

    async def _receive_loop(self, websocket: WebSocket, conn: Connection) -> None:
        while True:
            text = await websocket.receive_text()
            try:
                data = json.loads(text)
            except ValueError:
                self._push(conn, {"type": "error", "message": "Malformed JSON"})
                continue

            message_type = data.get("type") if isinstance(data, dict) else None
            if message_type == "ping":
                self._push(conn, {"type": "pong"})
            elif message_type == "activity_update":
                self._client_activity(conn, data)
            elif message_type == "update_presence":
                self._presence_update(conn, data)
            else:
                self._push(conn, {"type": "error", "message": "Unsupported message"})

    def _client_activity(self, conn: Connection, data: dict[str, Any]) -> None:
        """Activity reported by the client, e.g. a note added in the UI."""
        action = data.get("action")
        if not action or not isinstance(action, str):
            self._push(conn, {"type": "error", "message": "Activity action is required"})
            return

        details = {
            "description": data.get("description"),
            "entity_type": data.get("entity_type"),
            "entity_id": data.get("entity_id"),
            "metadata": data.get("metadata") or {},
        }
        self._publish_from(conn, {"action": action, "details": details})
        logger.info(
            "Client activity broadcast",
            extra={"context": {"user_id": conn.user_id, "action": action}},
        )

    def _presence_update(self, conn: Connection, data: dict[str, Any]) -> None:
        self._publish_from(
            conn,
            {
                "action": "presence_update",
                "details": {
                    "user_id": conn.user_id,
                    "status": data.get("status"),
                    "activity": data.get("activity"),
                },
            },
        )

    def _publish_from(self, conn: Connection, payload: dict[str, Any]) -> None:
        # agents report to the admin roles; everyone else to all
        target_roles = ADMIN_ROLES if conn.role is UserRole.AGENT else ()
        self._broadcaster.publish(
            Event(
                kind=EventKind.ACTIVITY_UPDATE,
                id=new_event_id("activity"),
                payload=payload,
                origin_user_id=conn.user_id,
                origin_role=conn.role,
                target_roles=target_roles,
            )
        )

    async def _send_loop(self, websocket: WebSocket, conn: Connection) -> None:
        while True:
            frame = await conn.queue.get()
            try:
                await websocket.send_json(frame)
            except Exception:
                logger.info(
                    "Send failed, closing relay",
                    extra={"context": {"connection_id": conn.id}},
                )
                return

    @staticmethod
    def _push(conn: Connection, frame: dict[str, Any]) -> None:
        try:
            conn.queue.put_nowait(frame)
        except asyncio.QueueFull:
            conn.dropped += 1

    def _register(self, user_id: str, role: UserRole) -> Connection:
        conn = Connection(
            id=uuid.uuid4().hex,
            user_id=user_id,
            role=role,
            loop=asyncio.get_running_loop(),
            queue=asyncio.Queue(maxsize=self._queue_size),
        )
        self._connections[conn.id] = conn
        sockets = self._user_connections.setdefault(user_id, set())
        sockets.add(conn.id)
        logger.info(
            "User connected",
            extra={"context": {"user_id": user_id, "connection_id": conn.id, "role": role.value}},
        )

        if len(sockets) == 1:
            self._publish_presence("user_online", conn)
        return conn

    def _unregister(self, conn: Connection) -> None:
        self._connections.pop(conn.id, None)
        sockets = self._user_connections.get(conn.user_id)
        logger.info(
            "User disconnected",
            extra={"context": {"user_id": conn.user_id, "connection_id": conn.id}},
        )
        if sockets is None:
            return
        sockets.discard(conn.id)
        if not sockets:
            del self._user_connections[conn.user_id]
            self._publish_presence("user_offline", conn)

    def _publish_presence(self, action: str, conn: Connection) -> None:
        self._broadcaster.publish(
            Event(
                kind=EventKind.ACTIVITY_UPDATE,
                id=new_event_id("activity"),
                payload={"action": action, "details": {"user_id": conn.user_id}},
                origin_user_id=conn.user_id,
                origin_role=conn.role,
            )
        )

    def online_users(self) -> list[dict[str, Any]]:
        """Users with at least one open connection."""
        users = []
        for user_id, conn_ids in self._user_connections.items():
            first = self._connections.get(next(iter(conn_ids)))
            users.append(
                {
                    "user_id": user_id,
                    "role": first.role.value if first else None,
                    "connection_count": len(conn_ids),
                }
            )
        return users

    def connection_stats(self) -> dict[str, Any]:
        """Totals for the health endpoint."""
        total = len(self._connections)
        unique = len(self._user_connections)
        return {
            "total_connections": total,
            "unique_users": unique,
            "average_connections_per_user": total / unique if unique else 0,
            "dropped_events": sum(conn.dropped for conn in self._connections.values()),
        }
