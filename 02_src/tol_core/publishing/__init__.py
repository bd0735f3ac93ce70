"""Response-interception publishing module."""

from .context import (
    PublishContext,
    actor_from_headers,
    is_success,
    set_event_local,
)
from .publishers import (
    CRM_ROLES,
    ActivityLogger,
    ResponseHook,
    ResponsePublisher,
    log_activity,
    notify_admins,
    publish_crm_update,
    publish_invitation_accepted,
    publish_invitation_sent,
    publish_role_changed,
    publish_user_login,
    publish_user_logout,
    publish_user_registered,
)
from .route import EventPublishingRoute

__all__ = [
    "PublishContext",
    "actor_from_headers",
    "is_success",
    "set_event_local",
    "ResponseHook",
    "ResponsePublisher",
    "ActivityLogger",
    "log_activity",
    "notify_admins",
    "CRM_ROLES",
    "publish_invitation_sent",
    "publish_invitation_accepted",
    "publish_user_registered",
    "publish_user_login",
    "publish_user_logout",
    "publish_role_changed",
    "publish_crm_update",
    "EventPublishingRoute",
]
