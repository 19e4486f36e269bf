from __future__ import annotations

import logging
from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel

from app.core.errors import CapacityExhausted, NotFoundError, ValidationError
from app.core.settings import settings
from app.schemas.agent import AgentCreate, AgentResponse, AgentUpdate
from app.schemas.chat import (
    ChatMessageCreate,
    ChatMessageResponse,
    ChatSessionCreate,
    ChatSessionResponse,
    ChatSessionUpdate,
)
from app.schemas.common import RESOLVED_STATUSES, SenderType, SessionStatus, TicketSource, TicketStatus
from app.schemas.customer import CustomerCreate, CustomerResponse, CustomerUpdate
from app.schemas.ticket import TicketCreate, TicketFilters, TicketResponse, TicketUpdate
from app.services.classification import (
    categorize,
    determine_priority,
    extract_tags,
    skill_matches_category,
    sla_hours_for,
)
from app.services.store.base import EntityStore, utcnow

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

CHAT_TITLE_PREFIX = "Chat Support: "
CHAT_TITLE_CHARS = 50

# caller-settable session states; active/waiting follow the message flow
SETTABLE_SESSION_STATUSES = {SessionStatus.TRANSFERRED, SessionStatus.ENDED}


def _coerce(schema: type[M], data: Any) -> M:
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError("Invalid input", details=e.errors(include_url=False, include_context=False))


def _changes(schema: type[M], patch: Any) -> dict[str, Any]:
    # explicit nulls are ignored: a patch can set fields, not clear them
    model = _coerce(schema, patch)
    return {k: getattr(model, k) for k in model.model_fields_set if getattr(model, k) is not None}


def derive_session_status(current: SessionStatus, sender_type: SenderType) -> SessionStatus:
    """Activity state after a message: customer -> waiting, agent -> active.

    Applies whatever the prior state was; system messages leave it alone.
    """
    if sender_type == SenderType.CUSTOMER:
        return SessionStatus.WAITING
    if sender_type == SenderType.AGENT:
        return SessionStatus.ACTIVE
    return current


def chat_ticket_title(message: str) -> str:
    # the ellipsis is appended even when nothing was cut
    return f"{CHAT_TITLE_PREFIX}{(message or '')[:CHAT_TITLE_CHARS]}..."


def ticket_from_chat(session: ChatSessionResponse, message: str) -> TicketCreate:
    category = categorize(message)
    return TicketCreate(
        title=chat_ticket_title(message),
        description=message,
        status=TicketStatus.OPEN,
        priority=determine_priority(message),
        category=category,
        tags=extract_tags(message),
        customer_id=session.customer_id,
        sla_hours=sla_hours_for(category),
        source=TicketSource.CHAT,
        metadata={"chat_session_id": session.id},
    )


class LifecycleManager:
    """Creation and cross-entity side effects for tickets and chat sessions."""

    def __init__(self, store: EntityStore) -> None:
        self.store = store

    # customers

    def register_customer(self, data: CustomerCreate | dict[str, Any]) -> CustomerResponse:
        payload = _coerce(CustomerCreate, data)
        with self.store.lock:
            if self.store.find_customer_by_email(payload.email) is not None:
                raise ValidationError("Customer with this email already exists", details={"email": payload.email})
            customer = self.store.create_customer(payload.model_dump())
        logger.info("customer.created customer_id=%s", customer.id)
        return customer

    def get_customer(self, customer_id: str) -> CustomerResponse:
        customer = self.store.get_customer(customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        return customer

    def update_customer(self, customer_id: str, patch: CustomerUpdate | dict[str, Any]) -> CustomerResponse:
        updated = self.store.update_customer(customer_id, _changes(CustomerUpdate, patch))
        if updated is None:
            raise NotFoundError("Customer", customer_id)
        return updated

    # agents

    def create_agent(self, data: AgentCreate | dict[str, Any]) -> AgentResponse:
        payload = _coerce(AgentCreate, data)
        fields = payload.model_dump()
        if fields.get("max_chats") is None:
            fields["max_chats"] = settings.default_agent_max_chats
        if fields["current_chats"] > fields["max_chats"]:
            raise ValidationError("current_chats cannot exceed max_chats")
        agent = self.store.create_agent(fields)
        logger.info("agent.created agent_id=%s status=%s max_chats=%s", agent.id, agent.status.value, agent.max_chats)
        return agent

    def get_agent(self, agent_id: str) -> AgentResponse:
        agent = self.store.get_agent(agent_id)
        if agent is None:
            raise NotFoundError("Agent", agent_id)
        return agent

    def list_agents(self) -> list[AgentResponse]:
        return self.store.list_agents()

    def update_agent(self, agent_id: str, patch: AgentUpdate | dict[str, Any]) -> AgentResponse:
        changes = _changes(AgentUpdate, patch)
        with self.store.lock:
            agent = self.get_agent(agent_id)
            max_chats = changes.get("max_chats")
            if max_chats is not None and max_chats < agent.current_chats:
                raise ValidationError(
                    "max_chats cannot be lower than current_chats",
                    details={"current_chats": agent.current_chats, "max_chats": max_chats},
                )
            updated = self.store.update_agent(agent_id, changes)
        if updated is None:
            raise NotFoundError("Agent", agent_id)
        return updated

    # tickets

    def create_ticket(self, data: TicketCreate | dict[str, Any]) -> TicketResponse:
        """Store a ticket and hand it to an agent.

        An explicitly requested agent must have spare capacity; otherwise the
        ticket goes through auto-assignment, which leaves it unassigned when
        nobody is available.
        """
        payload = _coerce(TicketCreate, data)
        fields = payload.model_dump()
        requested_agent = fields.pop("assigned_agent_id", None)
        if fields.get("sla_hours") is None:
            fields["sla_hours"] = sla_hours_for(payload.category)
        if payload.status in RESOLVED_STATUSES:
            fields["resolved_at"] = utcnow()

        with self.store.lock:
            if requested_agent:
                self.get_agent(requested_agent)
                if not self.store.try_claim_agent(requested_agent):
                    raise CapacityExhausted("Agent has no free capacity", details={"agent_id": requested_agent})
                fields["assigned_agent_id"] = requested_agent
            ticket = self.store.create_ticket(fields)
            logger.info(
                "ticket.created ticket_id=%s category=%s priority=%s source=%s",
                ticket.id,
                ticket.category,
                ticket.priority.value,
                ticket.source.value,
            )
            if not requested_agent:
                ticket = self._auto_assign(ticket)
        return ticket

    def get_ticket(self, ticket_id: str) -> TicketResponse:
        ticket = self.store.get_ticket(ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket", ticket_id)
        return ticket

    def list_tickets(self, filters: TicketFilters | dict[str, Any] | None = None) -> list[TicketResponse]:
        return self.store.list_tickets(_coerce(TicketFilters, filters) if filters is not None else None)

    def update_ticket(self, ticket_id: str, patch: TicketUpdate | dict[str, Any]) -> TicketResponse:
        changes = _changes(TicketUpdate, patch)
        new_agent = changes.pop("assigned_agent_id", None)

        with self.store.lock:
            current = self.get_ticket(ticket_id)
            new_status = changes.get("status")
            status_changed = new_status is not None and new_status != current.status
            if status_changed:
                if new_status in RESOLVED_STATUSES:
                    if current.resolved_at is None:
                        changes["resolved_at"] = utcnow()
                else:
                    # reopened: resolved_at only describes the current resolution
                    changes["resolved_at"] = None

            updated = self.store.update_ticket(ticket_id, changes)
            if updated is None:
                raise NotFoundError("Ticket", ticket_id)
            if status_changed:
                self._log_status_change(ticket_id, current.status, new_status)
            if new_agent and new_agent != updated.assigned_agent_id:
                updated = self.assign_agent(ticket_id, new_agent)
        return updated

    def assign_agent(self, ticket_id: str, agent_id: str) -> TicketResponse:
        with self.store.lock:
            ticket = self.get_ticket(ticket_id)
            self.get_agent(agent_id)
            if ticket.assigned_agent_id == agent_id:
                return ticket
            if not self.store.try_claim_agent(agent_id):
                raise CapacityExhausted("Agent has no free capacity", details={"agent_id": agent_id})
            updated = self.store.update_ticket(ticket_id, {"assigned_agent_id": agent_id})
        if updated is None:
            raise NotFoundError("Ticket", ticket_id)
        logger.info("ticket.assigned ticket_id=%s agent_id=%s mode=manual", ticket_id, agent_id)
        return updated

    def _auto_assign(self, ticket: TicketResponse) -> TicketResponse:
        candidates = self.store.list_available_agents()
        if not candidates:
            logger.info("ticket.unassigned ticket_id=%s reason=no_available_agents", ticket.id)
            return ticket

        skilled = [a for a in candidates if skill_matches_category(a.skills, ticket.category)]
        skilled_ids = {a.id for a in skilled}
        ordered = skilled + [a for a in candidates if a.id not in skilled_ids]

        for agent in ordered:
            # the claim can still lose to a writer in another process; move on
            if not self.store.try_claim_agent(agent.id):
                continue
            updated = self.store.update_ticket(ticket.id, {"assigned_agent_id": agent.id})
            logger.info(
                "ticket.assigned ticket_id=%s agent_id=%s mode=auto skill_match=%s",
                ticket.id,
                agent.id,
                agent.id in skilled_ids,
            )
            return updated or ticket

        logger.info("ticket.unassigned ticket_id=%s reason=capacity_exhausted", ticket.id)
        return ticket

    def _log_status_change(self, ticket_id: str, old: TicketStatus, new: TicketStatus) -> None:
        logger.info(
            "ticket.status_changed ticket_id=%s old=%s new=%s",
            ticket_id,
            TicketStatus(old).value,
            TicketStatus(new).value,
        )

    # chat

    def create_chat_session(self, data: ChatSessionCreate | dict[str, Any]) -> ChatSessionResponse:
        payload = _coerce(ChatSessionCreate, data)
        if payload.agent_id:
            self.get_agent(payload.agent_id)
        session = self.store.create_chat_session(payload.model_dump())
        logger.info("chat.session_created session_id=%s customer_id=%s", session.id, session.customer_id)
        return session

    def get_chat_session(self, session_id: str) -> ChatSessionResponse:
        session = self.store.get_chat_session(session_id)
        if session is None:
            raise NotFoundError("Chat session", session_id)
        return session

    def list_chat_sessions(
        self, *, customer_id: str | None = None, status: str | None = None
    ) -> list[ChatSessionResponse]:
        return self.store.list_chat_sessions(customer_id=customer_id, status=status)

    def update_chat_session(
        self, session_id: str, patch: ChatSessionUpdate | dict[str, Any]
    ) -> ChatSessionResponse:
        changes = _changes(ChatSessionUpdate, patch)
        with self.store.lock:
            session = self.get_chat_session(session_id)
            status = changes.get("status")
            if status is not None and status != session.status:
                if status not in SETTABLE_SESSION_STATUSES:
                    raise ValidationError(
                        "Session status active/waiting follows the message flow and cannot be set",
                        details={"status": SessionStatus(status).value},
                    )
                if status == SessionStatus.ENDED:
                    changes["ended_at"] = utcnow()
            elif status is not None:
                changes.pop("status")
            if changes.get("agent_id"):
                self.get_agent(changes["agent_id"])
            updated = self.store.update_chat_session(session_id, changes)
        if updated is None:
            raise NotFoundError("Chat session", session_id)
        if status is not None and status != session.status:
            logger.info(
                "chat.session_status_changed session_id=%s old=%s new=%s",
                session_id,
                session.status.value,
                SessionStatus(status).value,
            )
        return updated

    def add_chat_message(self, data: ChatMessageCreate | dict[str, Any]) -> ChatMessageResponse:
        """Append a message and derive the session state from its sender.

        The first customer message of a session without a ticket opens one,
        classified from the message text; later messages never do.
        """
        payload = _coerce(ChatMessageCreate, data)
        fields = payload.model_dump()
        session_id = fields.pop("session_id")

        with self.store.lock:
            message = self.store.append_message(session_id, fields, derive_session_status)
            if message is None:
                raise NotFoundError("Chat session", session_id)
            if message.sender_type == SenderType.CUSTOMER:
                session = self.store.get_chat_session(session_id)
                if session is not None and not session.ticket_id:
                    self._create_ticket_from_chat(session, message.content)
        return message

    def _create_ticket_from_chat(self, session: ChatSessionResponse, message: str) -> TicketResponse:
        ticket = self.create_ticket(ticket_from_chat(session, message))
        if self.store.link_ticket_to_session(session.id, ticket.id):
            logger.info("chat.ticket_created session_id=%s ticket_id=%s", session.id, ticket.id)
        else:
            logger.warning("chat.ticket_link_skipped session_id=%s ticket_id=%s", session.id, ticket.id)
        return ticket

    def list_messages(self, session_id: str) -> list[ChatMessageResponse]:
        return self.get_chat_session(session_id).messages

    def mark_messages_read(self, session_id: str, reader_type: SenderType | str) -> int:
        """Mark every message the reader did not send as read; returns how many matched."""
        self.get_chat_session(session_id)
        reader = SenderType(reader_type)
        others = [s.value for s in SenderType if s != reader]
        return self.store.update_messages(session_id, {"read": True}, sender_types=others)
