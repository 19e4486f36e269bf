import threading
import unittest


from app.core.database import make_engine
from app.core.errors import CapacityExhausted, NotFoundError, ValidationError
from app.schemas.common import AgentStatus, Priority, SenderType, SessionStatus, TicketSource, TicketStatus
from app.services.lifecycle import LifecycleManager, chat_ticket_title, derive_session_status
from app.services.store.memory import InMemoryStore
from app.services.store.sql import SqlStore


class LifecycleCases:
    """Shared cases; subclasses provide the store."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()
        self.manager = LifecycleManager(self.store)
        self.customer = self.manager.register_customer({"name": "Ada", "email": "Ada@Example.com"})

    def _agent(self, name, *, current=0, max_chats=5, skills=None, status=AgentStatus.ONLINE):
        return self.manager.create_agent(
            {
                "name": name,
                "email": f"{name.lower()}@desk.example.com",
                "status": status,
                "current_chats": current,
                "max_chats": max_chats,
                "skills": skills or [],
            }
        )

    def _ticket(self, **overrides):
        data = {
            "title": "Cannot pay",
            "description": "Card declined",
            "category": "Billing & Payments",
            "customer_id": self.customer.id,
        }
        data.update(overrides)
        return self.manager.create_ticket(data)

    # customers

    def test_customer_email_unique(self):
        self.assertEqual(self.customer.email, "ada@example.com")
        with self.assertRaises(ValidationError):
            self.manager.register_customer({"name": "Other", "email": "ADA@example.com"})

    def test_customer_email_must_be_well_formed(self):
        for email in ["a@b.", "a@.com", "a@b..c", "a@@b.c", "a@b,c.com", "plainaddress"]:
            with self.assertRaises(ValidationError, msg=email):
                self.manager.register_customer({"name": "Bad", "email": email})
        self.assertEqual(len(self.store.list_customers()), 1)

    def test_unknown_customer(self):
        with self.assertRaises(NotFoundError):
            self.manager.get_customer("cust_missing")

    # tickets

    def test_create_ticket_defaults(self):
        t = self._ticket()
        self.assertTrue(t.id.startswith("ticket_"))
        self.assertEqual(t.status, TicketStatus.OPEN)
        self.assertEqual(t.priority, Priority.MEDIUM)
        self.assertEqual(t.source, TicketSource.WEB)
        self.assertEqual(t.sla_hours, 8)
        self.assertLessEqual(t.created_at, t.updated_at)
        self.assertIsNone(t.assigned_agent_id)

    def test_ticket_ids_unique(self):
        ids = {self._ticket().id for _ in range(20)}
        self.assertEqual(len(ids), 20)

    def test_update_ticket_not_found(self):
        with self.assertRaises(NotFoundError):
            self.manager.update_ticket("ticket_missing", {"status": "resolved"})

    def test_update_ticket_logs_status_change(self):
        t = self._ticket()
        with self.assertLogs("app.services.lifecycle", level="INFO") as logs:
            updated = self.manager.update_ticket(t.id, {"status": "in_progress"})
        self.assertEqual(updated.status, TicketStatus.IN_PROGRESS)
        self.assertGreaterEqual(updated.updated_at, t.updated_at)
        self.assertTrue(any("ticket.status_changed" in line and "old=open new=in_progress" in line for line in logs.output))

    def test_resolved_at_follows_status(self):
        t = self._ticket()
        resolved = self.manager.update_ticket(t.id, {"status": "resolved"})
        self.assertIsNotNone(resolved.resolved_at)
        closed = self.manager.update_ticket(t.id, {"status": "closed"})
        self.assertEqual(closed.resolved_at, resolved.resolved_at)
        reopened = self.manager.update_ticket(t.id, {"status": "open"})
        self.assertIsNone(reopened.resolved_at)

    def test_patch_ignores_nulls(self):
        t = self._ticket()
        updated = self.manager.update_ticket(t.id, {"title": None, "priority": "high"})
        self.assertEqual(updated.title, "Cannot pay")
        self.assertEqual(updated.priority, Priority.HIGH)

    def test_list_tickets_newest_first_and_filtered(self):
        first = self._ticket(title="first")
        second = self._ticket(title="second", category="Technical Issues")
        self.assertEqual([t.id for t in self.manager.list_tickets()], [second.id, first.id])
        only_tech = self.manager.list_tickets({"category": ["Technical Issues"]})
        self.assertEqual([t.id for t in only_tech], [second.id])

    # assignment

    def test_skill_match_beats_load(self):
        self._agent("A1", current=2, skills=[])
        a2 = self._agent("A2", current=0, skills=["billing"])
        t = self._ticket()
        self.assertEqual(t.assigned_agent_id, a2.id)
        self.assertEqual(self.manager.get_agent(a2.id).current_chats, 1)

    def test_least_loaded_without_skills(self):
        self._agent("Busy", current=3)
        idle = self._agent("Idle", current=1)
        t = self._ticket(category="General Inquiry")
        self.assertEqual(t.assigned_agent_id, idle.id)

    def test_no_available_agent_leaves_ticket_unassigned(self):
        self._agent("Away", status=AgentStatus.AWAY)
        self._agent("Full", current=2, max_chats=2)
        t = self._ticket()
        self.assertIsNone(t.assigned_agent_id)

    def test_capacity_never_exceeded(self):
        agent = self._agent("Solo", max_chats=2)
        tickets = [self._ticket() for _ in range(4)]
        self.assertEqual(sum(1 for t in tickets if t.assigned_agent_id == agent.id), 2)
        self.assertEqual(self.manager.get_agent(agent.id).current_chats, 2)
        self.assertEqual(self.store.list_available_agents(), [])

    def test_concurrent_creation_respects_capacity(self):
        agent = self._agent("Solo", max_chats=3)
        errors = []

        def work():
            try:
                self._ticket()
            except Exception as e:  # surfaced below
                errors.append(e)

        threads = [threading.Thread(target=work) for _ in range(8)]
        for th in threads:
            th.start()
        for th in threads:
            th.join()
        self.assertEqual(errors, [])
        self.assertEqual(self.manager.get_agent(agent.id).current_chats, 3)
        assigned = [t for t in self.manager.list_tickets() if t.assigned_agent_id == agent.id]
        self.assertEqual(len(assigned), 3)

    def test_manual_assignment(self):
        agent = self._agent("Manual", max_chats=1, status=AgentStatus.OFFLINE)
        t = self._ticket()
        self.assertIsNone(t.assigned_agent_id)
        assigned = self.manager.assign_agent(t.id, agent.id)
        self.assertEqual(assigned.assigned_agent_id, agent.id)
        other = self._ticket()
        with self.assertRaises(CapacityExhausted):
            self.manager.assign_agent(other.id, agent.id)
        with self.assertRaises(NotFoundError):
            self.manager.assign_agent(other.id, "agent_missing")

    def test_update_agent_rejects_capacity_below_load(self):
        agent = self._agent("Loaded", current=3)
        with self.assertRaises(ValidationError):
            self.manager.update_agent(agent.id, {"max_chats": 2})

    # chat

    def test_session_status_follows_sender(self):
        s = self.manager.create_chat_session({"customer_id": self.customer.id})
        self.assertEqual(s.status, SessionStatus.ACTIVE)
        self.manager.add_chat_message(
            {"session_id": s.id, "sender_id": self.customer.id, "sender_type": "customer", "content": "hello"}
        )
        self.assertEqual(self.manager.get_chat_session(s.id).status, SessionStatus.WAITING)
        self.manager.add_chat_message(
            {"session_id": s.id, "sender_id": "agent_x", "sender_type": "agent", "content": "hi, how can I help?"}
        )
        self.assertEqual(self.manager.get_chat_session(s.id).status, SessionStatus.ACTIVE)
        self.manager.add_chat_message(
            {"session_id": s.id, "sender_id": "system", "sender_type": "system", "content": "agent joined"}
        )
        self.assertEqual(self.manager.get_chat_session(s.id).status, SessionStatus.ACTIVE)

    def test_message_on_ended_session_reopens_it(self):
        s = self.manager.create_chat_session({"customer_id": self.customer.id})
        ended = self.manager.update_chat_session(s.id, {"status": "ended", "rating": 5})
        self.assertEqual(ended.status, SessionStatus.ENDED)
        self.assertIsNotNone(ended.ended_at)
        self.manager.add_chat_message(
            {"session_id": s.id, "sender_id": self.customer.id, "sender_type": "customer", "content": "one more thing"}
        )
        self.assertEqual(self.manager.get_chat_session(s.id).status, SessionStatus.WAITING)

    def test_derived_states_cannot_be_set(self):
        s = self.manager.create_chat_session({"customer_id": self.customer.id})
        with self.assertRaises(ValidationError):
            self.manager.update_chat_session(s.id, {"status": "waiting"})

    def test_messages_keep_order_and_timestamps_increase(self):
        s = self.manager.create_chat_session({"customer_id": self.customer.id})
        for i in range(5):
            self.manager.add_chat_message(
                {"session_id": s.id, "sender_id": "agent_x", "sender_type": "agent", "content": f"m{i}"}
            )
        messages = self.manager.list_messages(s.id)
        self.assertEqual([m.content for m in messages], ["m0", "m1", "m2", "m3", "m4"])
        stamps = [m.timestamp for m in messages]
        self.assertTrue(all(a < b for a, b in zip(stamps, stamps[1:])))

    def test_first_customer_message_creates_one_ticket(self):
        agent = self._agent("Tech", skills=["technical"])
        s = self.manager.create_chat_session({"customer_id": self.customer.id})
        text = "Urgent: checkout page shows an error"
        self.manager.add_chat_message(
            {"session_id": s.id, "sender_id": self.customer.id, "sender_type": "customer", "content": text}
        )
        session = self.manager.get_chat_session(s.id)
        self.assertIsNotNone(session.ticket_id)
        ticket = self.manager.get_ticket(session.ticket_id)
        self.assertEqual(ticket.title, "Chat Support: " + text + "...")
        self.assertEqual(ticket.description, text)
        self.assertEqual(ticket.category, "Technical Issues")
        self.assertEqual(ticket.priority, Priority.URGENT)
        self.assertEqual(ticket.sla_hours, 2)
        self.assertEqual(ticket.source, TicketSource.CHAT)
        self.assertEqual(ticket.metadata["chat_session_id"], s.id)
        self.assertEqual(ticket.assigned_agent_id, agent.id)

        self.manager.add_chat_message(
            {"session_id": s.id, "sender_id": self.customer.id, "sender_type": "customer", "content": "still broken"}
        )
        self.assertEqual(len(self.manager.list_tickets()), 1)
        self.assertEqual(self.manager.get_chat_session(s.id).ticket_id, session.ticket_id)

    def test_agent_message_does_not_create_ticket(self):
        s = self.manager.create_chat_session({"customer_id": self.customer.id})
        self.manager.add_chat_message(
            {"session_id": s.id, "sender_id": "agent_x", "sender_type": "agent", "content": "Welcome!"}
        )
        self.assertIsNone(self.manager.get_chat_session(s.id).ticket_id)
        self.assertEqual(self.manager.list_tickets(), [])

    def test_concurrent_customer_messages(self):
        s = self.manager.create_chat_session({"customer_id": self.customer.id})

        def send(i):
            self.manager.add_chat_message(
                {"session_id": s.id, "sender_id": self.customer.id, "sender_type": "customer", "content": f"msg {i}"}
            )

        threads = [threading.Thread(target=send, args=(i,)) for i in range(10)]
        for th in threads:
            th.start()
        for th in threads:
            th.join()
        self.assertEqual(len(self.manager.list_messages(s.id)), 10)
        self.assertEqual(len(self.manager.list_tickets()), 1)

    def test_message_to_unknown_session(self):
        with self.assertRaises(NotFoundError):
            self.manager.add_chat_message(
                {"session_id": "chat_missing", "sender_id": "x", "sender_type": "customer", "content": "hi"}
            )

    def test_mark_messages_read(self):
        s = self.manager.create_chat_session({"customer_id": self.customer.id})
        self.manager.add_chat_message(
            {"session_id": s.id, "sender_id": self.customer.id, "sender_type": "customer", "content": "hi"}
        )
        self.manager.add_chat_message(
            {"session_id": s.id, "sender_id": "agent_x", "sender_type": "agent", "content": "hello"}
        )
        self.assertEqual(self.manager.mark_messages_read(s.id, SenderType.AGENT), 1)
        by_sender = {m.sender_type: m.read for m in self.manager.list_messages(s.id)}
        self.assertEqual(by_sender, {SenderType.CUSTOMER: True, SenderType.AGENT: False})


class TestLifecycleInMemory(LifecycleCases, unittest.TestCase):
    def make_store(self):
        return InMemoryStore()


class TestLifecycleSql(LifecycleCases, unittest.TestCase):
    def make_store(self):
        return SqlStore(make_engine("sqlite://"))


class TestPureHelpers(unittest.TestCase):
    def test_title_always_has_ellipsis(self):
        self.assertEqual(chat_ticket_title("short"), "Chat Support: short...")
        self.assertEqual(chat_ticket_title("x" * 80), "Chat Support: " + "x" * 50 + "...")

    def test_derive_status(self):
        for prior in SessionStatus:
            self.assertEqual(derive_session_status(prior, SenderType.CUSTOMER), SessionStatus.WAITING)
            self.assertEqual(derive_session_status(prior, SenderType.AGENT), SessionStatus.ACTIVE)
            self.assertEqual(derive_session_status(prior, SenderType.SYSTEM), prior)


if __name__ == "__main__":
    unittest.main()
