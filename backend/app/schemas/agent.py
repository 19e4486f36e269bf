from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.schemas.common import AgentRole, AgentStatus


class AgentPerformance(BaseModel):
    avg_response_time: float = 0.0
    resolution_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    satisfaction_score: float = Field(default=0.0, ge=0.0, le=5.0)
    tickets_resolved: int = 0


def _normalize_skills(skills: List[str] | None) -> List[str]:
    out: List[str] = []
    seen: set[str] = set()
    for s in skills or []:
        k = str(s).strip().lower()
        if not k or k in seen:
            continue
        seen.add(k)
        out.append(k)
    return out


class AgentCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    role: AgentRole = AgentRole.AGENT
    status: AgentStatus = AgentStatus.OFFLINE
    skills: List[str] = Field(default_factory=list)
    current_chats: int = Field(default=0, ge=0)
    max_chats: Optional[int] = Field(default=None, gt=0)
    performance: AgentPerformance = Field(default_factory=AgentPerformance)

    @field_validator("skills")
    @classmethod
    def _lower_skills(cls, v: List[str]) -> List[str]:
        return _normalize_skills(v)


class AgentUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[AgentRole] = None
    status: Optional[AgentStatus] = None
    skills: Optional[List[str]] = None
    max_chats: Optional[int] = Field(default=None, gt=0)
    performance: Optional[AgentPerformance] = None

    @field_validator("skills")
    @classmethod
    def _lower_skills(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else _normalize_skills(v)


class AgentResponse(BaseModel):
    id: str
    name: str
    email: str
    role: AgentRole = AgentRole.AGENT
    status: AgentStatus = AgentStatus.OFFLINE
    skills: List[str] = Field(default_factory=list)
    current_chats: int = 0
    max_chats: int = 5
    performance: AgentPerformance = Field(default_factory=AgentPerformance)
    created_at: datetime
    last_active: datetime

    class Config:
        from_attributes = True

    @property
    def is_available(self) -> bool:
        return self.status == AgentStatus.ONLINE and self.current_chats < self.max_chats
