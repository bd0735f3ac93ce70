"""Shared FastAPI dependencies."""

from typing import Callable

from fastapi import Depends, HTTPException, Request, status

from ..models import Actor, UserRole
from ..publishing import actor_from_headers


def get_actor(request: Request) -> Actor | None:
    """Caller identity forwarded by the gateway (X-User-Id / X-User-Role)."""
    return actor_from_headers(request.headers)


def require_actor(actor: Actor | None = Depends(get_actor)) -> Actor:
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return actor


def require_role(min_role: UserRole) -> Callable[..., Actor]:
    """Dependency factory: the actor must hold ``min_role`` or higher."""

    def dependency(actor: Actor = Depends(require_actor)) -> Actor:
        if not actor.role.at_least(min_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{min_role.value} role or higher required",
            )
        return actor

    return dependency
