"""Event and activity-feed routes."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...app import Application
from ...broadcaster import ChannelMembership, should_deliver
from ...logging_config import get_logger
from ...models import Activity, Actor, UserRole
from ...publishing import notify_admins
from ..dependencies import require_actor, require_role
from ..schemas import ActivityResponse, EventResponse

logger = get_logger(__name__)


class NotificationRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    data: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str
    channels: int
    buffered_events: int
    connections: dict[str, Any]


def create_events_router(app: Application) -> APIRouter:
    """Create events router."""
    router = APIRouter(prefix="/api", tags=["events"])

    @router.get("/health", response_model=HealthResponse)
    async def health() -> dict:
        """Broadcaster and hub counters."""
        broadcaster = app.broadcaster
        return {
            "status": "ok",
            "channels": broadcaster.channel_count,
            "buffered_events": len(broadcaster.recent_events(broadcaster.history_limit)),
            "connections": app.hub.connection_stats(),
        }

    @router.get("/events/recent", response_model=list[EventResponse])
    async def recent_events(
        limit: int = Query(50, ge=1, le=1000),
        actor: Actor = Depends(require_actor),
    ) -> list[EventResponse]:
        """Most recent events the caller is allowed to see, oldest first."""
        broadcaster = app.broadcaster
        membership = ChannelMembership.for_user(actor.user_id, actor.role)
        visible = [
            event
            for event in broadcaster.recent_events(broadcaster.history_limit)
            if should_deliver(event, membership)
        ]
        return [EventResponse.from_event(event) for event in visible[-limit:]]

    @router.post(
        "/notifications",
        response_model=EventResponse,
        status_code=status.HTTP_201_CREATED,
    )
    async def send_notification(
        payload: NotificationRequest,
        actor: Actor = Depends(require_role(UserRole.ADMIN)),
    ) -> EventResponse:
        """Send a system notification to the admin roles."""
        event = notify_admins(
            app.broadcaster,
            payload.message,
            {**payload.data, "sent_by": actor.user_id},
        )
        logger.info("Admin notification sent", extra={"context": {"event_id": event.id}})
        return EventResponse.from_event(event)

    @router.get("/activities", response_model=list[ActivityResponse])
    async def get_activities(
        limit: int = Query(100, ge=1, le=1000),
        kind: str | None = Query(None, description="Filter by event kind"),
        actor_id: str | None = Query(None, description="Filter by actor"),
        actor: Actor = Depends(require_role(UserRole.ADMIN)),
    ) -> list[Activity]:
        """Persisted activity feed, newest first."""
        try:
            return await app.storage.get_activities(
                limit=limit, kind=kind, actor_id=actor_id
            )
        except Exception as e:
            logger.exception("Failed to load activities")
            raise HTTPException(status_code=500, detail=str(e))

    return router
