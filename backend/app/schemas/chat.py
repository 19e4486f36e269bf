from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.schemas.common import MessageType, Priority, SenderType, SessionStatus


class ChatSessionCreate(BaseModel):
    customer_id: str = Field(min_length=1)
    agent_id: Optional[str] = None
    status: SessionStatus = SessionStatus.ACTIVE
    priority: Priority = Priority.MEDIUM


class ChatSessionUpdate(BaseModel):
    # active/waiting are derived from the message flow and cannot be set here
    status: Optional[SessionStatus] = None
    agent_id: Optional[str] = None
    priority: Optional[Priority] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    feedback: Optional[str] = None


class ChatMessageCreate(BaseModel):
    session_id: str = Field(min_length=1)
    sender_id: str = Field(min_length=1)
    sender_type: SenderType
    content: str = Field(min_length=1)
    type: MessageType = MessageType.TEXT
    metadata: Optional[Dict[str, Any]] = None


class ChatMessageBody(BaseModel):
    sender_id: str = Field(min_length=1)
    sender_type: SenderType
    content: str = Field(min_length=1)
    type: MessageType = MessageType.TEXT
    metadata: Optional[Dict[str, Any]] = None


class ChatMessageResponse(BaseModel):
    id: str
    session_id: str
    sender_id: str
    sender_type: SenderType
    content: str
    type: MessageType = MessageType.TEXT
    timestamp: datetime
    metadata: Optional[Dict[str, Any]] = None
    read: bool = False
    edited: Optional[bool] = None
    edited_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ChatSessionResponse(BaseModel):
    id: str
    ticket_id: Optional[str] = None
    customer_id: str
    agent_id: Optional[str] = None
    status: SessionStatus
    priority: Priority = Priority.MEDIUM
    messages: List[ChatMessageResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    ended_at: Optional[datetime] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None

    class Config:
        from_attributes = True


class MarkReadRequest(BaseModel):
    reader_type: SenderType
