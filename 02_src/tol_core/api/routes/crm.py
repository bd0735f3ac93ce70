"""CRM customer routes."""

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from ...app import Application
from ...models import Actor, Customer, CustomerStatus, UserRole
from ...publishing import (
    EventPublishingRoute,
    log_activity,
    publish_crm_update,
    set_event_local,
)
from ..dependencies import require_actor, require_role
from ..schemas import CustomerResponse, EmailAddress


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailAddress
    company: str | None = None
    status: CustomerStatus = CustomerStatus.LEAD
    assigned_to: str | None = None


class CustomerUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    email: EmailAddress | None = None
    company: str | None = None
    status: CustomerStatus | None = None
    assigned_to: str | None = None


def _customer_details(ctx) -> dict:
    return {"customer_id": ctx.locals.get("customer_id"), "fields": sorted(ctx.body)}


def create_crm_router(app: Application) -> APIRouter:
    """Create CRM router."""
    router = APIRouter(prefix="/api/crm", tags=["crm"], route_class=EventPublishingRoute)

    @router.get("/customers", response_model=list[CustomerResponse])
    async def list_customers(actor: Actor = Depends(require_actor)) -> list[Customer]:
        """Agents see their own customers; admins see all."""
        if actor.role is UserRole.CLIENT:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        if actor.role is UserRole.AGENT:
            return await app.storage.list_customers(assigned_to=actor.user_id)
        return await app.storage.list_customers()

    @router.post(
        "/customers",
        response_model=CustomerResponse,
        status_code=status.HTTP_201_CREATED,
        dependencies=[
            Depends(publish_crm_update),
            Depends(log_activity("customer_created", _customer_details)),
        ],
    )
    async def create_customer(
        payload: CustomerCreate,
        request: Request,
        actor: Actor = Depends(require_role(UserRole.AGENT)),
    ) -> Customer:
        """Create a customer; an agent's new customers are assigned to them."""
        assigned_to = payload.assigned_to
        if actor.role is UserRole.AGENT:
            assigned_to = actor.user_id

        now = datetime.now(timezone.utc)
        customer = Customer(
            id=str(uuid.uuid4()),
            name=payload.name,
            email=payload.email.lower(),
            company=payload.company,
            status=payload.status,
            assigned_to=assigned_to,
            created_at=now,
            updated_at=now,
        )
        await app.storage.save_customer(customer)

        set_event_local(request, "action", "created")
        set_event_local(request, "customer_id", customer.id)
        return customer

    @router.patch(
        "/customers/{customer_id}",
        response_model=CustomerResponse,
        dependencies=[
            Depends(publish_crm_update),
            Depends(log_activity("customer_updated", _customer_details)),
        ],
    )
    async def update_customer(
        customer_id: str,
        payload: CustomerUpdate,
        request: Request,
        actor: Actor = Depends(require_role(UserRole.AGENT)),
    ) -> Customer:
        """Update fields of a customer the actor is responsible for."""
        customer = await app.storage.get_customer(customer_id)
        if not customer:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
        if actor.role is UserRole.AGENT and customer.assigned_to != actor.user_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your customer")

        changes = payload.model_dump(exclude_unset=True)
        if actor.role is UserRole.AGENT:
            # agents cannot hand customers over
            changes.pop("assigned_to", None)
        for key, value in changes.items():
            setattr(customer, key, value.lower() if key == "email" and value else value)
        customer.updated_at = datetime.now(timezone.utc)
        await app.storage.save_customer(customer)

        set_event_local(request, "action", "updated")
        set_event_local(request, "customer_id", customer.id)
        return customer

    return router
