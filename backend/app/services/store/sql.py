from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Iterator, TypeVar

from pydantic import BaseModel
from sqlalchemy import func, inspect as sa_inspect, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, selectinload, sessionmaker

from app.core.database import Base, make_session_factory
from app.models.agent import Agent
from app.models.analytics import AnalyticsDaily
from app.models.chat import ChatMessage, ChatSession
from app.models.customer import Customer
from app.models.ticket import Ticket
from app.schemas.agent import AgentResponse
from app.schemas.analytics import AnalyticsMetrics, AnalyticsResponse
from app.schemas.chat import ChatMessageResponse, ChatSessionResponse
from app.schemas.customer import CustomerResponse
from app.schemas.ticket import TicketFilters, TicketResponse
from app.services.store.base import (
    EntityStore,
    StatusDeriver,
    analytics_key,
    as_utc,
    new_id,
    next_timestamp,
    plain,
    utcnow,
)


R = TypeVar("R", bound=BaseModel)


def _row_dict(row: Any) -> dict[str, Any]:
    # keyed by column name, so Ticket.ticket_metadata comes back as "metadata"
    out: dict[str, Any] = {}
    for attr in sa_inspect(row).mapper.column_attrs:
        value = getattr(row, attr.key)
        if value is None:
            continue
        if isinstance(value, datetime):
            value = as_utc(value)
        out[attr.columns[0].name] = value
    return out


def _to_record(row: Any, schema: type[R]) -> R:
    return schema.model_validate(_row_dict(row))


def _session_record(row: ChatSession) -> ChatSessionResponse:
    data = _row_dict(row)
    data["messages"] = [_row_dict(m) for m in row.messages]
    return ChatSessionResponse.model_validate(data)


def _columns(model: type, data: dict[str, Any]) -> dict[str, Any]:
    """Map schema field names to mapped attribute names, dropping unknown keys."""
    by_column = {attr.columns[0].name: attr.key for attr in sa_inspect(model).column_attrs}
    out: dict[str, Any] = {}
    for k, v in data.items():
        key = by_column.get(k)
        if key is None:
            continue
        out[key] = plain(v)
    return out


class SqlStore(EntityStore):
    """Relational store on SQLAlchemy; one short-lived session per operation."""

    def __init__(self, engine: Engine, session_factory: sessionmaker | None = None, *, create_tables: bool = True) -> None:
        super().__init__()
        self._engine = engine
        self._session_factory = session_factory or make_session_factory(engine)
        if create_tables:
            Base.metadata.create_all(bind=engine)

    @contextmanager
    def _db(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _insert(self, model: type, record: BaseModel) -> None:
        with self._db() as db:
            db.add(model(**_columns(model, record.model_dump())))
            db.commit()

    def _patch(self, model: type, schema: type[R], entity_id: str, patch: dict[str, Any]) -> R | None:
        with self.lock, self._db() as db:
            row = db.get(model, entity_id)
            if row is None:
                return None
            merged = schema.model_validate({**_row_dict(row), **patch})
            for key, value in _columns(model, {k: getattr(merged, k) for k in patch}).items():
                setattr(row, key, value)
            db.commit()
            return _to_record(row, schema)

    def create_customer(self, data: dict[str, Any]) -> CustomerResponse:
        now = utcnow()
        record = CustomerResponse.model_validate({**data, "id": new_id("cust"), "created_at": now, "updated_at": now})
        self._insert(Customer, record)
        return record

    def get_customer(self, customer_id: str) -> CustomerResponse | None:
        with self._db() as db:
            row = db.get(Customer, customer_id)
            return _to_record(row, CustomerResponse) if row else None

    def find_customer_by_email(self, email: str) -> CustomerResponse | None:
        e = (email or "").strip().lower()
        with self._db() as db:
            row = db.query(Customer).filter(func.lower(Customer.email) == e).first()
            return _to_record(row, CustomerResponse) if row else None

    def update_customer(self, customer_id: str, patch: dict[str, Any]) -> CustomerResponse | None:
        return self._patch(Customer, CustomerResponse, customer_id, {**patch, "updated_at": utcnow()})

    def list_customers(self) -> list[CustomerResponse]:
        with self._db() as db:
            rows = db.query(Customer).order_by(Customer.created_at.desc(), Customer.id.desc()).all()
            return [_to_record(r, CustomerResponse) for r in rows]

    def create_agent(self, data: dict[str, Any]) -> AgentResponse:
        now = utcnow()
        record = AgentResponse.model_validate({**data, "id": new_id("agent"), "created_at": now, "last_active": now})
        self._insert(Agent, record)
        return record

    def get_agent(self, agent_id: str) -> AgentResponse | None:
        with self._db() as db:
            row = db.get(Agent, agent_id)
            return _to_record(row, AgentResponse) if row else None

    def update_agent(self, agent_id: str, patch: dict[str, Any]) -> AgentResponse | None:
        return self._patch(Agent, AgentResponse, agent_id, {**patch, "last_active": utcnow()})

    def list_agents(self) -> list[AgentResponse]:
        with self._db() as db:
            rows = db.query(Agent).order_by(Agent.created_at.asc(), Agent.id.asc()).all()
            return [_to_record(r, AgentResponse) for r in rows]

    def list_available_agents(self) -> list[AgentResponse]:
        with self._db() as db:
            rows = (
                db.query(Agent)
                .filter(Agent.status == "online", Agent.current_chats < Agent.max_chats)
                .order_by(Agent.current_chats.asc(), Agent.created_at.asc(), Agent.id.asc())
                .all()
            )
            return [_to_record(r, AgentResponse) for r in rows]

    def try_claim_agent(self, agent_id: str) -> bool:
        # conditional increment keeps current_chats <= max_chats across processes too
        with self.lock, self._db() as db:
            result = db.execute(
                update(Agent)
                .where(Agent.id == agent_id, Agent.current_chats < Agent.max_chats)
                .values(current_chats=Agent.current_chats + 1, last_active=utcnow())
            )
            db.commit()
            return (result.rowcount or 0) == 1

    def create_ticket(self, data: dict[str, Any]) -> TicketResponse:
        now = utcnow()
        record = TicketResponse.model_validate({**data, "id": new_id("ticket"), "created_at": now, "updated_at": now})
        self._insert(Ticket, record)
        return record

    def get_ticket(self, ticket_id: str) -> TicketResponse | None:
        with self._db() as db:
            row = db.get(Ticket, ticket_id)
            return _to_record(row, TicketResponse) if row else None

    def update_ticket(self, ticket_id: str, patch: dict[str, Any]) -> TicketResponse | None:
        return self._patch(Ticket, TicketResponse, ticket_id, {**patch, "updated_at": utcnow()})

    def list_tickets(self, filters: TicketFilters | None = None) -> list[TicketResponse]:
        with self._db() as db:
            query = db.query(Ticket)
            if filters is not None:
                if filters.status:
                    query = query.filter(Ticket.status.in_(filters.status))
                if filters.priority:
                    query = query.filter(Ticket.priority.in_(filters.priority))
                if filters.category:
                    query = query.filter(Ticket.category.in_(filters.category))
                if filters.assigned_agent_id:
                    query = query.filter(Ticket.assigned_agent_id == filters.assigned_agent_id)
                if filters.customer_id:
                    query = query.filter(Ticket.customer_id == filters.customer_id)
            rows = query.order_by(Ticket.created_at.desc(), Ticket.id.desc()).all()
            return [_to_record(r, TicketResponse) for r in rows]

    def create_chat_session(self, data: dict[str, Any]) -> ChatSessionResponse:
        now = utcnow()
        record = ChatSessionResponse.model_validate(
            {**data, "id": new_id("chat"), "messages": [], "created_at": now, "updated_at": now}
        )
        with self._db() as db:
            db.add(ChatSession(**_columns(ChatSession, record.model_dump(exclude={"messages"}))))
            db.commit()
        return record

    def get_chat_session(self, session_id: str) -> ChatSessionResponse | None:
        with self._db() as db:
            row = db.query(ChatSession).options(selectinload(ChatSession.messages)).filter(ChatSession.id == session_id).first()
            return _session_record(row) if row else None

    def update_chat_session(self, session_id: str, patch: dict[str, Any]) -> ChatSessionResponse | None:
        with self.lock, self._db() as db:
            row = db.get(ChatSession, session_id)
            if row is None:
                return None
            patch = {**patch, "updated_at": utcnow()}
            merged = ChatSessionResponse.model_validate({**_session_record(row).model_dump(), **patch})
            for key, value in _columns(ChatSession, {k: getattr(merged, k) for k in patch}).items():
                setattr(row, key, value)
            db.commit()
            return _session_record(row)

    def list_chat_sessions(
        self, *, customer_id: str | None = None, status: str | None = None
    ) -> list[ChatSessionResponse]:
        with self._db() as db:
            query = db.query(ChatSession).options(selectinload(ChatSession.messages))
            if customer_id:
                query = query.filter(ChatSession.customer_id == customer_id)
            if status:
                query = query.filter(ChatSession.status == status)
            rows = query.order_by(ChatSession.created_at.desc(), ChatSession.id.desc()).all()
            return [_session_record(r) for r in rows]

    def append_message(
        self, session_id: str, data: dict[str, Any], derive_status: StatusDeriver
    ) -> ChatMessageResponse | None:
        with self.lock, self._db() as db:
            session = db.get(ChatSession, session_id)
            if session is None:
                return None
            last = (
                db.query(ChatMessage)
                .filter(ChatMessage.session_id == session_id)
                .order_by(ChatMessage.position.desc())
                .first()
            )
            timestamp = next_timestamp(last.timestamp if last else None)
            record = ChatMessageResponse.model_validate(
                {**data, "id": new_id("msg"), "session_id": session_id, "timestamp": timestamp}
            )
            row = ChatMessage(**_columns(ChatMessage, record.model_dump()))
            row.position = (last.position + 1) if last else 0
            db.add(row)
            current = _session_record(session).status
            session.status = plain(derive_status(current, record.sender_type))
            session.updated_at = timestamp
            db.commit()
            return record

    def link_ticket_to_session(self, session_id: str, ticket_id: str) -> bool:
        with self.lock, self._db() as db:
            result = db.execute(
                update(ChatSession)
                .where(ChatSession.id == session_id, ChatSession.ticket_id.is_(None))
                .values(ticket_id=ticket_id, updated_at=utcnow())
            )
            db.commit()
            return (result.rowcount or 0) == 1

    def update_messages(
        self, session_id: str, patch: dict[str, Any], *, message_ids: list[str] | None = None,
        sender_types: list[str] | None = None,
    ) -> int:
        with self.lock, self._db() as db:
            query = db.query(ChatMessage).filter(ChatMessage.session_id == session_id)
            if message_ids is not None:
                query = query.filter(ChatMessage.id.in_(message_ids))
            if sender_types is not None:
                query = query.filter(ChatMessage.sender_type.in_([plain(s) for s in sender_types]))
            rows = query.all()
            values = _columns(ChatMessage, patch)
            for row in rows:
                for key, value in values.items():
                    setattr(row, key, value)
            if rows:
                db.execute(
                    update(ChatSession).where(ChatSession.id == session_id).values(updated_at=utcnow())
                )
            db.commit()
            return len(rows)

    def upsert_analytics(self, day: date, metrics: dict[str, Any]) -> AnalyticsResponse:
        key = analytics_key(day)
        with self.lock, self._db() as db:
            row = db.get(AnalyticsDaily, key)
            if row is None:
                row = AnalyticsDaily(id=key, date=day, metrics={}, trends={})
                db.add(row)
            existing = AnalyticsResponse.model_validate(_row_dict(row))
            merged = AnalyticsMetrics.model_validate({**existing.metrics.model_dump(), **metrics})
            row.metrics = plain(merged)
            row.trends = plain(existing.trends)
            db.commit()
            return AnalyticsResponse(id=key, date=day, metrics=merged, trends=existing.trends)

    def list_analytics(self, start: date | None = None, end: date | None = None) -> list[AnalyticsResponse]:
        with self._db() as db:
            query = db.query(AnalyticsDaily)
            if start is not None:
                query = query.filter(AnalyticsDaily.date >= start)
            if end is not None:
                query = query.filter(AnalyticsDaily.date <= end)
            return [_to_record(r, AnalyticsResponse) for r in query.order_by(AnalyticsDaily.date.asc()).all()]
