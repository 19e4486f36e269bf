from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable
from uuid import uuid4

from pydantic import BaseModel

from app.schemas.agent import AgentResponse
from app.schemas.analytics import AnalyticsResponse
from app.schemas.chat import ChatMessageResponse, ChatSessionResponse
from app.schemas.common import SenderType, SessionStatus
from app.schemas.customer import CustomerResponse
from app.schemas.ticket import TicketFilters, TicketResponse


StatusDeriver = Callable[[SessionStatus, SenderType], SessionStatus]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def new_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid4().hex[:9]}"


def next_timestamp(previous: datetime | None, now: datetime | None = None) -> datetime:
    """Message timestamps strictly increase within a session, even within one clock tick."""
    now = now or utcnow()
    if previous is not None:
        previous = as_utc(previous)
        if now <= previous:
            return previous + timedelta(microseconds=1)
    return now


def analytics_key(day: date) -> str:
    return day.isoformat()


def plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return plain(value.model_dump())
    if isinstance(value, dict):
        return {k: plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [plain(v) for v in value]
    return value


class EntityStore(ABC):
    """Persistence collaborator for the support desk.

    Getters and updaters return ``None`` for unknown ids; raising typed
    not-found errors is the lifecycle manager's job. Every record handed out
    is a detached copy, so mutating it never changes stored state.

    ``lock`` serialises compound read-modify-write units (auto-assignment,
    message append plus ticket derivation). It is re-entrant so store methods
    can take it again inside a caller's critical section.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()

    # customers
    @abstractmethod
    def create_customer(self, data: dict[str, Any]) -> CustomerResponse: ...

    @abstractmethod
    def get_customer(self, customer_id: str) -> CustomerResponse | None: ...

    @abstractmethod
    def find_customer_by_email(self, email: str) -> CustomerResponse | None: ...

    @abstractmethod
    def update_customer(self, customer_id: str, patch: dict[str, Any]) -> CustomerResponse | None: ...

    @abstractmethod
    def list_customers(self) -> list[CustomerResponse]: ...

    # agents
    @abstractmethod
    def create_agent(self, data: dict[str, Any]) -> AgentResponse: ...

    @abstractmethod
    def get_agent(self, agent_id: str) -> AgentResponse | None: ...

    @abstractmethod
    def update_agent(self, agent_id: str, patch: dict[str, Any]) -> AgentResponse | None: ...

    @abstractmethod
    def list_agents(self) -> list[AgentResponse]: ...

    @abstractmethod
    def list_available_agents(self) -> list[AgentResponse]:
        """Online agents below capacity, fewest active chats first."""

    @abstractmethod
    def try_claim_agent(self, agent_id: str) -> bool:
        """Increment ``current_chats`` only while it is below ``max_chats``."""

    # tickets
    @abstractmethod
    def create_ticket(self, data: dict[str, Any]) -> TicketResponse: ...

    @abstractmethod
    def get_ticket(self, ticket_id: str) -> TicketResponse | None: ...

    @abstractmethod
    def update_ticket(self, ticket_id: str, patch: dict[str, Any]) -> TicketResponse | None: ...

    @abstractmethod
    def list_tickets(self, filters: TicketFilters | None = None) -> list[TicketResponse]: ...

    # chat
    @abstractmethod
    def create_chat_session(self, data: dict[str, Any]) -> ChatSessionResponse: ...

    @abstractmethod
    def get_chat_session(self, session_id: str) -> ChatSessionResponse | None: ...

    @abstractmethod
    def update_chat_session(self, session_id: str, patch: dict[str, Any]) -> ChatSessionResponse | None: ...

    @abstractmethod
    def list_chat_sessions(
        self, *, customer_id: str | None = None, status: str | None = None
    ) -> list[ChatSessionResponse]: ...

    @abstractmethod
    def append_message(
        self, session_id: str, data: dict[str, Any], derive_status: StatusDeriver
    ) -> ChatMessageResponse | None: ...

    @abstractmethod
    def link_ticket_to_session(self, session_id: str, ticket_id: str) -> bool:
        """Set the session's ticket once; returns False when one is already linked."""

    @abstractmethod
    def update_messages(
        self, session_id: str, patch: dict[str, Any], *, message_ids: list[str] | None = None,
        sender_types: list[str] | None = None,
    ) -> int: ...

    # analytics
    @abstractmethod
    def upsert_analytics(self, day: date, metrics: dict[str, Any]) -> AnalyticsResponse: ...

    @abstractmethod
    def list_analytics(self, start: date | None = None, end: date | None = None) -> list[AnalyticsResponse]: ...
