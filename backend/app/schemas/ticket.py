from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.schemas.common import Priority, TicketSource, TicketStatus


class TicketCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    category: str = Field(min_length=1)
    customer_id: str = Field(min_length=1)
    status: TicketStatus = TicketStatus.OPEN
    priority: Priority = Priority.MEDIUM
    tags: List[str] = Field(default_factory=list)
    assigned_agent_id: Optional[str] = None
    due_date: Optional[datetime] = None
    sla_hours: Optional[int] = Field(default=None, gt=0)
    source: TicketSource = TicketSource.WEB
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TicketUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TicketStatus] = None
    priority: Optional[Priority] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    assigned_agent_id: Optional[str] = None
    due_date: Optional[datetime] = None
    sla_hours: Optional[int] = Field(default=None, gt=0)
    satisfaction: Optional[float] = Field(default=None, ge=1, le=5)
    metadata: Optional[Dict[str, Any]] = None


class TicketFilters(BaseModel):
    status: Optional[List[str]] = None
    priority: Optional[List[str]] = None
    category: Optional[List[str]] = None
    assigned_agent_id: Optional[str] = None
    customer_id: Optional[str] = None

    def matches(self, ticket: "TicketResponse") -> bool:
        if self.status and ticket.status.value not in self.status:
            return False
        if self.priority and ticket.priority.value not in self.priority:
            return False
        if self.category and ticket.category not in self.category:
            return False
        if self.assigned_agent_id and ticket.assigned_agent_id != self.assigned_agent_id:
            return False
        if self.customer_id and ticket.customer_id != self.customer_id:
            return False
        return True


class TicketResponse(BaseModel):
    id: str
    title: str
    description: str
    status: TicketStatus
    priority: Priority
    category: str
    tags: List[str] = Field(default_factory=list)
    customer_id: str
    assigned_agent_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    sla_hours: int = Field(gt=0)
    satisfaction: Optional[float] = None
    source: TicketSource = TicketSource.WEB
    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        from_attributes = True


class AssignAgentRequest(BaseModel):
    agent_id: str = Field(min_length=1)
