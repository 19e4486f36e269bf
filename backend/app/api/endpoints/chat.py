from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_lifecycle
from app.core.errors import ValidationError
from app.schemas.chat import (
    ChatMessageBody,
    ChatMessageCreate,
    ChatMessageResponse,
    ChatSessionCreate,
    ChatSessionResponse,
    ChatSessionUpdate,
    MarkReadRequest,
)
from app.schemas.common import SessionStatus
from app.services.lifecycle import LifecycleManager


router = APIRouter()


@router.post("/chat/sessions", response_model=ChatSessionResponse, status_code=201)
async def create_session(payload: ChatSessionCreate, manager: LifecycleManager = Depends(get_lifecycle)):
    manager.get_customer(payload.customer_id)
    return manager.create_chat_session(payload)


@router.get("/chat/sessions", response_model=list[ChatSessionResponse])
async def list_sessions(
    customer_id: Optional[str] = Query(default=None, alias="customerId"),
    status: Optional[str] = Query(default=None),
    manager: LifecycleManager = Depends(get_lifecycle),
):
    if status is not None and status not in {s.value for s in SessionStatus}:
        raise ValidationError("Invalid status filter", details={"status": status})
    return manager.list_chat_sessions(customer_id=customer_id, status=status)


@router.get("/chat/sessions/{session_id}", response_model=ChatSessionResponse)
async def get_session(session_id: str, manager: LifecycleManager = Depends(get_lifecycle)):
    return manager.get_chat_session(session_id)


@router.patch("/chat/sessions/{session_id}", response_model=ChatSessionResponse)
async def update_session(
    session_id: str,
    payload: ChatSessionUpdate,
    manager: LifecycleManager = Depends(get_lifecycle),
):
    return manager.update_chat_session(session_id, payload)


@router.get("/chat/sessions/{session_id}/messages", response_model=list[ChatMessageResponse])
async def list_messages(session_id: str, manager: LifecycleManager = Depends(get_lifecycle)):
    return manager.list_messages(session_id)


@router.post("/chat/sessions/{session_id}/messages", response_model=ChatMessageResponse, status_code=201)
async def post_message(
    session_id: str,
    payload: ChatMessageBody,
    manager: LifecycleManager = Depends(get_lifecycle),
):
    data = ChatMessageCreate(session_id=session_id, **payload.model_dump())
    return manager.add_chat_message(data)


@router.post("/chat/sessions/{session_id}/read")
async def mark_read(
    session_id: str,
    payload: MarkReadRequest,
    manager: LifecycleManager = Depends(get_lifecycle),
) -> dict:
    updated = manager.mark_messages_read(session_id, payload.reader_type)
    return {"success": True, "updated": updated}
