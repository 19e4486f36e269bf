from __future__ import annotations

from datetime import date
from typing import Any, TypeVar

from pydantic import BaseModel

from app.schemas.agent import AgentResponse
from app.schemas.analytics import AnalyticsMetrics, AnalyticsResponse
from app.schemas.chat import ChatMessageResponse, ChatSessionResponse
from app.schemas.customer import CustomerResponse
from app.schemas.ticket import TicketFilters, TicketResponse
from app.services.store.base import (
    EntityStore,
    StatusDeriver,
    analytics_key,
    new_id,
    next_timestamp,
    utcnow,
)


R = TypeVar("R", bound=BaseModel)


def _merge(record: R, patch: dict[str, Any]) -> R:
    data = record.model_dump()
    data.update(patch)
    return type(record).model_validate(data)


def _newest_first(items: list[R]) -> list[R]:
    # items arrive in insertion order; later inserts win ties on created_at
    ordered = sorted(enumerate(items), key=lambda p: (getattr(p[1], "created_at"), p[0]), reverse=True)
    return [r for _, r in ordered]


class InMemoryStore(EntityStore):
    """Mock store kept in process memory; used for tests and when no database is wanted."""

    def __init__(self) -> None:
        super().__init__()
        self._customers: dict[str, CustomerResponse] = {}
        self._agents: dict[str, AgentResponse] = {}
        self._tickets: dict[str, TicketResponse] = {}
        self._sessions: dict[str, ChatSessionResponse] = {}
        self._analytics: dict[str, AnalyticsResponse] = {}

    def create_customer(self, data: dict[str, Any]) -> CustomerResponse:
        now = utcnow()
        record = CustomerResponse.model_validate({**data, "id": new_id("cust"), "created_at": now, "updated_at": now})
        with self.lock:
            self._customers[record.id] = record
        return record.model_copy(deep=True)

    def get_customer(self, customer_id: str) -> CustomerResponse | None:
        record = self._customers.get(customer_id)
        return record.model_copy(deep=True) if record else None

    def find_customer_by_email(self, email: str) -> CustomerResponse | None:
        e = (email or "").strip().lower()
        for record in list(self._customers.values()):
            if record.email.lower() == e:
                return record.model_copy(deep=True)
        return None

    def update_customer(self, customer_id: str, patch: dict[str, Any]) -> CustomerResponse | None:
        with self.lock:
            record = self._customers.get(customer_id)
            if record is None:
                return None
            updated = _merge(record, {**patch, "updated_at": utcnow()})
            self._customers[customer_id] = updated
        return updated.model_copy(deep=True)

    def list_customers(self) -> list[CustomerResponse]:
        return [r.model_copy(deep=True) for r in _newest_first(list(self._customers.values()))]

    def create_agent(self, data: dict[str, Any]) -> AgentResponse:
        now = utcnow()
        record = AgentResponse.model_validate({**data, "id": new_id("agent"), "created_at": now, "last_active": now})
        with self.lock:
            self._agents[record.id] = record
        return record.model_copy(deep=True)

    def get_agent(self, agent_id: str) -> AgentResponse | None:
        record = self._agents.get(agent_id)
        return record.model_copy(deep=True) if record else None

    def update_agent(self, agent_id: str, patch: dict[str, Any]) -> AgentResponse | None:
        with self.lock:
            record = self._agents.get(agent_id)
            if record is None:
                return None
            updated = _merge(record, {**patch, "last_active": utcnow()})
            self._agents[agent_id] = updated
        return updated.model_copy(deep=True)

    def list_agents(self) -> list[AgentResponse]:
        return [r.model_copy(deep=True) for r in self._agents.values()]

    def list_available_agents(self) -> list[AgentResponse]:
        with self.lock:
            available = [a for a in self._agents.values() if a.is_available]
            # sorted() is stable, so equal loads keep creation order
            return [a.model_copy(deep=True) for a in sorted(available, key=lambda a: a.current_chats)]

    def try_claim_agent(self, agent_id: str) -> bool:
        with self.lock:
            record = self._agents.get(agent_id)
            if record is None or record.current_chats >= record.max_chats:
                return False
            self._agents[agent_id] = _merge(
                record, {"current_chats": record.current_chats + 1, "last_active": utcnow()}
            )
            return True

    def create_ticket(self, data: dict[str, Any]) -> TicketResponse:
        now = utcnow()
        record = TicketResponse.model_validate({**data, "id": new_id("ticket"), "created_at": now, "updated_at": now})
        with self.lock:
            self._tickets[record.id] = record
        return record.model_copy(deep=True)

    def get_ticket(self, ticket_id: str) -> TicketResponse | None:
        record = self._tickets.get(ticket_id)
        return record.model_copy(deep=True) if record else None

    def update_ticket(self, ticket_id: str, patch: dict[str, Any]) -> TicketResponse | None:
        with self.lock:
            record = self._tickets.get(ticket_id)
            if record is None:
                return None
            updated = _merge(record, {**patch, "updated_at": utcnow()})
            self._tickets[ticket_id] = updated
        return updated.model_copy(deep=True)

    def list_tickets(self, filters: TicketFilters | None = None) -> list[TicketResponse]:
        tickets = list(self._tickets.values())
        if filters is not None:
            tickets = [t for t in tickets if filters.matches(t)]
        return [t.model_copy(deep=True) for t in _newest_first(tickets)]

    def create_chat_session(self, data: dict[str, Any]) -> ChatSessionResponse:
        now = utcnow()
        record = ChatSessionResponse.model_validate(
            {**data, "id": new_id("chat"), "messages": [], "created_at": now, "updated_at": now}
        )
        with self.lock:
            self._sessions[record.id] = record
        return record.model_copy(deep=True)

    def get_chat_session(self, session_id: str) -> ChatSessionResponse | None:
        record = self._sessions.get(session_id)
        return record.model_copy(deep=True) if record else None

    def update_chat_session(self, session_id: str, patch: dict[str, Any]) -> ChatSessionResponse | None:
        with self.lock:
            record = self._sessions.get(session_id)
            if record is None:
                return None
            updated = _merge(record, {**patch, "updated_at": utcnow()})
            self._sessions[session_id] = updated
        return updated.model_copy(deep=True)

    def list_chat_sessions(
        self, *, customer_id: str | None = None, status: str | None = None
    ) -> list[ChatSessionResponse]:
        sessions = list(self._sessions.values())
        if customer_id:
            sessions = [s for s in sessions if s.customer_id == customer_id]
        if status:
            sessions = [s for s in sessions if s.status == status]
        return [s.model_copy(deep=True) for s in _newest_first(sessions)]

    def append_message(
        self, session_id: str, data: dict[str, Any], derive_status: StatusDeriver
    ) -> ChatMessageResponse | None:
        with self.lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            previous = session.messages[-1].timestamp if session.messages else None
            timestamp = next_timestamp(previous)
            message = ChatMessageResponse.model_validate(
                {**data, "id": new_id("msg"), "session_id": session_id, "timestamp": timestamp}
            )
            session.messages.append(message)
            session.updated_at = timestamp
            session.status = derive_status(session.status, message.sender_type)
        return message.model_copy(deep=True)

    def link_ticket_to_session(self, session_id: str, ticket_id: str) -> bool:
        with self.lock:
            session = self._sessions.get(session_id)
            if session is None or session.ticket_id:
                return False
            session.ticket_id = ticket_id
            session.updated_at = utcnow()
            return True

    def update_messages(
        self, session_id: str, patch: dict[str, Any], *, message_ids: list[str] | None = None,
        sender_types: list[str] | None = None,
    ) -> int:
        changed = 0
        with self.lock:
            session = self._sessions.get(session_id)
            if session is None:
                return 0
            wanted = set(message_ids) if message_ids is not None else None
            for i, message in enumerate(session.messages):
                if wanted is not None and message.id not in wanted:
                    continue
                if sender_types is not None and message.sender_type not in sender_types:
                    continue
                session.messages[i] = _merge(message, patch)
                changed += 1
            if changed:
                session.updated_at = utcnow()
        return changed

    def upsert_analytics(self, day: date, metrics: dict[str, Any]) -> AnalyticsResponse:
        key = analytics_key(day)
        with self.lock:
            existing = self._analytics.get(key)
            if existing is None:
                existing = AnalyticsResponse(id=key, date=day)
            merged = AnalyticsMetrics.model_validate({**existing.metrics.model_dump(), **metrics})
            record = existing.model_copy(update={"metrics": merged})
            self._analytics[key] = record
        return record.model_copy(deep=True)

    def list_analytics(self, start: date | None = None, end: date | None = None) -> list[AnalyticsResponse]:
        out = []
        for record in sorted(self._analytics.values(), key=lambda r: r.date):
            if start is not None and record.date < start:
                continue
            if end is not None and record.date > end:
                continue
            out.append(record.model_copy(deep=True))
        return out
