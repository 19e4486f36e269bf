from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_lifecycle
from app.schemas.agent import AgentCreate, AgentResponse, AgentUpdate
from app.services.lifecycle import LifecycleManager


router = APIRouter()


@router.post("/agents", response_model=AgentResponse, status_code=201)
async def create_agent(payload: AgentCreate, manager: LifecycleManager = Depends(get_lifecycle)):
    return manager.create_agent(payload)


@router.get("/agents", response_model=list[AgentResponse])
async def list_agents(
    available: bool = Query(default=False),
    manager: LifecycleManager = Depends(get_lifecycle),
):
    if available:
        return manager.store.list_available_agents()
    return manager.list_agents()


@router.get("/agents/{agent_id}", response_model=AgentResponse)
async def get_agent(agent_id: str, manager: LifecycleManager = Depends(get_lifecycle)):
    return manager.get_agent(agent_id)


@router.patch("/agents/{agent_id}", response_model=AgentResponse)
async def update_agent(
    agent_id: str,
    payload: AgentUpdate,
    manager: LifecycleManager = Depends(get_lifecycle),
):
    return manager.update_agent(agent_id, payload)
