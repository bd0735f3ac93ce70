"""Auth API routes: registration and session events."""

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from ...app import Application
from ...logging_config import get_logger
from ...models import Actor, User, UserRole
from ...publishing import (
    EventPublishingRoute,
    log_activity,
    publish_user_login,
    publish_user_logout,
    publish_user_registered,
    set_event_local,
)
from ...storage import DuplicateEmailError
from ..dependencies import require_actor
from ..schemas import EmailAddress, StatusResponse, UserResponse

logger = get_logger(__name__)


class RegisterRequest(BaseModel):
    """Self-registration always creates a CLIENT; invitations grant other roles."""

    email: EmailAddress
    name: str = Field(..., min_length=1, max_length=200)


class SessionResponse(BaseModel):
    status: str
    user_id: str
    role: UserRole


def create_auth_router(app: Application) -> APIRouter:
    """Create auth router."""
    router = APIRouter(
        prefix="/api/auth", tags=["auth"], route_class=EventPublishingRoute
    )

    @router.post(
        "/register",
        response_model=UserResponse,
        status_code=status.HTTP_201_CREATED,
        dependencies=[Depends(publish_user_registered)],
    )
    async def register(payload: RegisterRequest, request: Request) -> User:
        """Create a client account."""
        user = User(
            id=str(uuid.uuid4()),
            email=payload.email.lower(),
            name=payload.name,
            role=UserRole.CLIENT,
            created_at=datetime.now(timezone.utc),
        )
        try:
            await app.storage.create_user(user)
        except DuplicateEmailError:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail="Email already registered"
            )

        set_event_local(request, "user_id", user.id)
        set_event_local(request, "email", user.email)
        set_event_local(request, "role", user.role.value)
        logger.info("User registered", extra={"context": {"user_id": user.id}})
        return user

    @router.post(
        "/login",
        response_model=SessionResponse,
        dependencies=[
            Depends(publish_user_login),
            Depends(log_activity("login", lambda ctx: {"method": "gateway"})),
        ],
    )
    async def login(request: Request, actor: Actor = Depends(require_actor)) -> dict:
        """Record the start of a session for an already-authenticated actor."""
        user = await app.storage.get_user(actor.user_id)
        if user:
            set_event_local(request, "email", user.email)
        return {"status": "ok", "user_id": actor.user_id, "role": actor.role}

    @router.post(
        "/logout",
        response_model=StatusResponse,
        dependencies=[Depends(publish_user_logout)],
    )
    async def logout(actor: Actor = Depends(require_actor)) -> dict:
        """Record the end of a session."""
        return {"status": "ok"}

    return router
