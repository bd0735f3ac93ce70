"""User management routes."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from ...app import Application
from ...models import Actor, User, UserRole
from ...publishing import (
    EventPublishingRoute,
    notify_admins,
    publish_role_changed,
    set_event_local,
)
from ..dependencies import require_actor, require_role
from ..schemas import UserResponse


class RoleChangeRequest(BaseModel):
    role: UserRole


def create_users_router(app: Application) -> APIRouter:
    """Create users router."""
    router = APIRouter(
        prefix="/api/users", tags=["users"], route_class=EventPublishingRoute
    )

    @router.get("/{user_id}", response_model=UserResponse)
    async def get_user(user_id: str, actor: Actor = Depends(require_actor)) -> User:
        """A user may read their own record; admins may read anyone's."""
        if actor.user_id != user_id and not actor.role.at_least(UserRole.ADMIN):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

        user = await app.storage.get_user(user_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return user

    @router.patch(
        "/{user_id}/role",
        response_model=UserResponse,
        dependencies=[Depends(publish_role_changed)],
    )
    async def change_role(
        user_id: str,
        payload: RoleChangeRequest,
        request: Request,
        actor: Actor = Depends(require_role(UserRole.ADMIN)),
    ) -> User:
        """Change a user's role; nobody can grant above their own level."""
        if not actor.role.at_least(payload.role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cannot grant a role above your own",
            )

        existing = await app.storage.get_user(user_id)
        if not existing:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

        user = await app.storage.update_user_role(user_id, payload.role)
        set_event_local(request, "previous_role", existing.role.value)

        notify_admins(
            app.broadcaster,
            f"Role of {user.email} changed to {payload.role.value}",
            {"user_id": user_id, "changed_by": actor.user_id},
        )
        return user

    return router
