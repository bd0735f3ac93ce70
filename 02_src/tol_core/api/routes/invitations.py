"""Invitation routes."""

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from ...app import Application
from ...models import Actor, Invitation, InvitationStatus, User, UserRole
from ...publishing import (
    EventPublishingRoute,
    publish_invitation_accepted,
    publish_invitation_sent,
    publish_user_registered,
    set_event_local,
)
from ...storage import DuplicateEmailError
from ..dependencies import require_role
from ..schemas import EmailAddress, InvitationResponse, UserResponse


class InvitationRequest(BaseModel):
    email: EmailAddress
    role: UserRole = UserRole.CLIENT


class AcceptInvitationRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


def create_invitations_router(app: Application) -> APIRouter:
    """Create invitations router."""
    router = APIRouter(
        prefix="/api/invitations", tags=["invitations"], route_class=EventPublishingRoute
    )

    @router.post(
        "",
        response_model=InvitationResponse,
        status_code=status.HTTP_201_CREATED,
        dependencies=[Depends(publish_invitation_sent)],
    )
    async def send_invitation(
        payload: InvitationRequest,
        request: Request,
        actor: Actor = Depends(require_role(UserRole.ADMIN)),
    ) -> Invitation:
        """Invite someone with a role no higher than the inviter's."""
        if not actor.role.at_least(payload.role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cannot invite with a role above your own",
            )

        invitation = Invitation(
            id=str(uuid.uuid4()),
            email=payload.email.lower(),
            role=payload.role,
            invited_by=actor.user_id,
            status=InvitationStatus.PENDING,
            created_at=datetime.now(timezone.utc),
        )
        await app.storage.save_invitation(invitation)
        set_event_local(request, "invitation_id", invitation.id)
        return invitation

    @router.get("", response_model=list[InvitationResponse])
    async def list_invitations(
        status_filter: InvitationStatus | None = Query(None, alias="status"),
        actor: Actor = Depends(require_role(UserRole.ADMIN)),
    ) -> list[Invitation]:
        """List invitations, newest first."""
        return await app.storage.list_invitations(status_filter)

    @router.post(
        "/{invitation_id}/accept",
        response_model=UserResponse,
        status_code=status.HTTP_201_CREATED,
        dependencies=[
            Depends(publish_invitation_accepted),
            Depends(publish_user_registered),
        ],
    )
    async def accept_invitation(
        invitation_id: str,
        payload: AcceptInvitationRequest,
        request: Request,
    ) -> User:
        """Create the invited account and notify the inviter."""
        invitation = await app.storage.get_invitation(invitation_id)
        if not invitation:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found"
            )
        if invitation.status is InvitationStatus.ACCEPTED:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail="Invitation already accepted"
            )

        now = datetime.now(timezone.utc)
        user = User(
            id=str(uuid.uuid4()),
            email=invitation.email,
            name=payload.name,
            role=invitation.role,
            created_at=now,
        )
        try:
            await app.storage.create_user(user)
        except DuplicateEmailError:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail="Email already registered"
            )

        invitation.status = InvitationStatus.ACCEPTED
        invitation.accepted_at = now
        await app.storage.save_invitation(invitation)

        set_event_local(request, "user_id", user.id)
        set_event_local(request, "email", user.email)
        set_event_local(request, "role", user.role.value)
        set_event_local(request, "invited_by", invitation.invited_by)
        return user

    return router
