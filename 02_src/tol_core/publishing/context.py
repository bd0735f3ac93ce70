"""Request context handed to event projections."""

import json
from dataclasses import dataclass, field
from typing import Any, Mapping

from starlette.requests import Request

from ..models import Actor, UserRole

USER_ID_HEADER = "x-user-id"
USER_ROLE_HEADER = "x-user-role"

_LOCALS_KEY = "event_locals"
_HOOKS_KEY = "event_hooks"


def actor_from_headers(headers: Mapping[str, str]) -> Actor | None:
    """Actor forwarded by the authenticating gateway, if any."""
    user_id = headers.get(USER_ID_HEADER)
    role = headers.get(USER_ROLE_HEADER)
    if not user_id or not role:
        return None
    try:
        return Actor(user_id=user_id, role=UserRole.parse(role))
    except ValueError:
        return None


def set_event_local(request: Request, key: str, value: Any) -> None:
    """Expose a handler-computed value (e.g. a new id) to projections."""
    event_locals = getattr(request.state, _LOCALS_KEY, None)
    if event_locals is None:
        event_locals = {}
        setattr(request.state, _LOCALS_KEY, event_locals)
    event_locals[key] = value


def pending_hooks(request: Request) -> list:
    hooks = getattr(request.state, _HOOKS_KEY, None)
    if hooks is None:
        hooks = []
        setattr(request.state, _HOOKS_KEY, hooks)
    return hooks


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


@dataclass
class PublishContext:
    """What a projection may read about a finished request."""

    status_code: int
    body: dict[str, Any] = field(default_factory=dict)
    path_params: dict[str, Any] = field(default_factory=dict)
    query_params: dict[str, str] = field(default_factory=dict)
    actor: Actor | None = None
    client_host: str | None = None
    user_agent: str | None = None
    locals: dict[str, Any] = field(default_factory=dict)

    @classmethod
    async def from_request(cls, request: Request, status_code: int) -> "PublishContext":
        body: dict[str, Any] = {}
        raw = await request.body()
        if raw:
            try:
                parsed = json.loads(raw)
            except ValueError:
                parsed = None
            if isinstance(parsed, dict):
                body = parsed

        return cls(
            status_code=status_code,
            body=body,
            path_params=dict(request.path_params),
            query_params=dict(request.query_params),
            actor=actor_from_headers(request.headers),
            client_host=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            locals=dict(getattr(request.state, _LOCALS_KEY, None) or {}),
        )
