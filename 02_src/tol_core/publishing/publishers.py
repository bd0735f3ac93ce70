"""Publishers that turn successful responses into broadcast events."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable

from starlette.background import BackgroundTasks
from starlette.requests import Request
from starlette.responses import Response

from ..broadcaster import IEventBroadcaster
from ..logging_config import get_logger
from ..models import ADMIN_ROLES, Event, EventKind, UserRole, new_event_id
from .context import PublishContext, is_success, pending_hooks

logger = get_logger(__name__)

Projection = Callable[[PublishContext], dict[str, Any]]
UserTargets = Callable[[PublishContext], Iterable[str]]
RoleTargets = Iterable[UserRole] | Callable[[PublishContext], Iterable[UserRole]]


class ResponseHook(ABC):
    """Base for hooks attached to a route with ``Depends(hook)``.

    The dependency only registers the hook on the request; the
    EventPublishingRoute runs it once the handler has produced a response.
    """

    async def __call__(self, request: Request) -> None:
        pending_hooks(request).append(self)

    @abstractmethod
    def after_handler(
        self,
        broadcaster: IEventBroadcaster,
        ctx: PublishContext,
        response: Response,
    ) -> None:
        """Act on the finished response."""


class ResponsePublisher(ResponseHook):
    """Publish one event of ``kind`` when the handler succeeds.

    ``project`` builds the payload from the request context. Optional
    ``target_users`` / ``target_roles`` select the audience.
    """

    def __init__(
        self,
        kind: EventKind,
        project: Projection,
        *,
        target_users: UserTargets | None = None,
        target_roles: RoleTargets | None = None,
        id_prefix: str = "msg",
    ):
        self.kind = EventKind(kind)
        self.project = project
        self.target_users = target_users
        self.target_roles = target_roles
        self.id_prefix = id_prefix

    def build_event(self, ctx: PublishContext) -> Event:
        target_users = tuple(self.target_users(ctx) or ()) if self.target_users else ()
        if callable(self.target_roles):
            target_roles = tuple(self.target_roles(ctx) or ())
        else:
            target_roles = tuple(self.target_roles or ())

        return Event(
            kind=self.kind,
            id=new_event_id(self.id_prefix),
            payload=self.project(ctx),
            origin_user_id=ctx.actor.user_id if ctx.actor else None,
            origin_role=ctx.actor.role if ctx.actor else None,
            target_user_ids=target_users,
            target_roles=target_roles,
        )

    def after_handler(
        self,
        broadcaster: IEventBroadcaster,
        ctx: PublishContext,
        response: Response,
    ) -> None:
        if not is_success(ctx.status_code):
            return
        try:
            broadcaster.publish(self.build_event(ctx))
        except Exception:
            logger.exception(
                "Failed to publish %s",
                self.kind.value,
                extra={"context": {"path_params": ctx.path_params}},
            )


class ActivityLogger(ResponseHook):
    """Record an ACTIVITY_UPDATE once the response has gone out."""

    def __init__(self, action: str, details: Projection):
        self.action = action
        self.details = details

    def build_event(self, ctx: PublishContext) -> Event:
        return Event(
            kind=EventKind.ACTIVITY_UPDATE,
            id=new_event_id("activity"),
            payload={
                "action": self.action,
                "details": self.details(ctx),
                "ip": ctx.client_host,
                "user_agent": ctx.user_agent,
            },
            origin_user_id=ctx.actor.user_id if ctx.actor else None,
            origin_role=ctx.actor.role if ctx.actor else None,
        )

    def after_handler(
        self,
        broadcaster: IEventBroadcaster,
        ctx: PublishContext,
        response: Response,
    ) -> None:
        tasks = BackgroundTasks()
        if response.background is not None:
            tasks.add_task(response.background)
        tasks.add_task(self._log, broadcaster, ctx)
        response.background = tasks

    async def _log(self, broadcaster: IEventBroadcaster, ctx: PublishContext) -> None:
        if not is_success(ctx.status_code):
            return
        try:
            broadcaster.publish(self.build_event(ctx))
        except Exception:
            logger.exception("Failed to log activity %s", self.action)


def log_activity(action: str, details: Projection | None = None) -> ActivityLogger:
    return ActivityLogger(action, details or (lambda ctx: {}))


def notify_admins(
    broadcaster: IEventBroadcaster,
    message: str,
    data: dict[str, Any] | None = None,
) -> Event:
    """System notification for the admin roles."""
    return broadcaster.publish(
        Event(
            kind=EventKind.SYSTEM_NOTIFICATION,
            id=new_event_id("notif"),
            payload={"message": message, **(data or {})},
            target_roles=ADMIN_ROLES,
        )
    )


def _actor_id(ctx: PublishContext) -> str | None:
    return ctx.actor.user_id if ctx.actor else None


publish_invitation_sent = ResponsePublisher(
    EventKind.INVITATION_SENT,
    lambda ctx: {
        "invitation_id": ctx.locals.get("invitation_id"),
        "email": ctx.body.get("email"),
        "role": ctx.body.get("role"),
        "invited_by": _actor_id(ctx),
    },
)

publish_invitation_accepted = ResponsePublisher(
    EventKind.INVITATION_ACCEPTED,
    lambda ctx: {
        "invitation_id": ctx.path_params.get("invitation_id"),
        "user_id": ctx.locals.get("user_id"),
        "email": ctx.locals.get("email"),
    },
    target_users=lambda ctx: [ctx.locals["invited_by"]] if ctx.locals.get("invited_by") else [],
)

publish_user_registered = ResponsePublisher(
    EventKind.USER_REGISTERED,
    lambda ctx: {
        "user_id": ctx.locals.get("user_id") or ctx.body.get("id"),
        "email": ctx.locals.get("email") or ctx.body.get("email"),
        "role": ctx.locals.get("role") or ctx.body.get("role"),
    },
)

publish_user_login = ResponsePublisher(
    EventKind.USER_LOGIN,
    lambda ctx: {
        "user_id": _actor_id(ctx),
        "email": ctx.locals.get("email"),
        "role": ctx.actor.role.value if ctx.actor else None,
        "ip": ctx.client_host,
        "user_agent": ctx.user_agent,
    },
)

publish_user_logout = ResponsePublisher(
    EventKind.USER_LOGOUT,
    lambda ctx: {
        "user_id": _actor_id(ctx),
        "role": ctx.actor.role.value if ctx.actor else None,
    },
)

publish_role_changed = ResponsePublisher(
    EventKind.ROLE_CHANGED,
    lambda ctx: {
        "user_id": ctx.path_params.get("user_id"),
        "role": ctx.body.get("role"),
        "previous_role": ctx.locals.get("previous_role"),
        "changed_by": _actor_id(ctx),
    },
    target_users=lambda ctx: [ctx.path_params["user_id"]],
)

# CRM staff: agents plus the admin roles
CRM_ROLES = (UserRole.AGENT, *ADMIN_ROLES)

publish_crm_update = ResponsePublisher(
    EventKind.CRM_UPDATE,
    lambda ctx: {
        "entity": "customer",
        "action": ctx.locals.get("action"),
        "customer_id": ctx.locals.get("customer_id"),
        "changes": ctx.body,
    },
    target_roles=CRM_ROLES,
)
