from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_lifecycle, split_csv
from app.core.errors import ValidationError
from app.schemas.common import Priority, TicketStatus
from app.schemas.ticket import AssignAgentRequest, TicketCreate, TicketFilters, TicketResponse, TicketUpdate
from app.services.lifecycle import LifecycleManager


router = APIRouter()


def _checked(values: list[str] | None, allowed: set[str], name: str) -> list[str] | None:
    if values is None:
        return None
    bad = [v for v in values if v not in allowed]
    if bad:
        raise ValidationError(f"Invalid {name} filter", details={name: bad, "allowed": sorted(allowed)})
    return values


@router.get("/tickets", response_model=list[TicketResponse])
async def list_tickets(
    status: Optional[str] = Query(default=None),
    priority: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    assigned_agent_id: Optional[str] = Query(default=None, alias="assignedAgentId"),
    customer_id: Optional[str] = Query(default=None, alias="customerId"),
    manager: LifecycleManager = Depends(get_lifecycle),
):
    filters = TicketFilters(
        status=_checked(split_csv(status), {s.value for s in TicketStatus}, "status"),
        priority=_checked(split_csv(priority), {p.value for p in Priority}, "priority"),
        category=split_csv(category),
        assigned_agent_id=assigned_agent_id,
        customer_id=customer_id,
    )
    return manager.list_tickets(filters)


@router.post("/tickets", response_model=TicketResponse, status_code=201)
async def create_ticket(payload: TicketCreate, manager: LifecycleManager = Depends(get_lifecycle)):
    manager.get_customer(payload.customer_id)
    return manager.create_ticket(payload)


@router.get("/tickets/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: str, manager: LifecycleManager = Depends(get_lifecycle)):
    return manager.get_ticket(ticket_id)


@router.patch("/tickets/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: str,
    payload: TicketUpdate,
    manager: LifecycleManager = Depends(get_lifecycle),
):
    return manager.update_ticket(ticket_id, payload)


@router.post("/tickets/{ticket_id}/assign", response_model=TicketResponse)
async def assign_ticket(
    ticket_id: str,
    payload: AssignAgentRequest,
    manager: LifecycleManager = Depends(get_lifecycle),
):
    return manager.assign_agent(ticket_id, payload.agent_id)
