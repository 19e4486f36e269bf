import unittest
from datetime import date, datetime, timedelta, timezone


from app.schemas.agent import AgentResponse
from app.schemas.chat import ChatMessageResponse, ChatSessionResponse
from app.schemas.ticket import TicketResponse
from app.services import analytics
from app.services.lifecycle import LifecycleManager
from app.services.store.memory import InMemoryStore


NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _ticket(tid, days_ago, category, status="open", resolved_hours=None, satisfaction=None, agent=None):
    created = NOW - timedelta(days=days_ago)
    return TicketResponse(
        id=tid,
        title=tid,
        description=tid,
        status=status,
        priority="medium",
        category=category,
        customer_id="cust_1",
        assigned_agent_id=agent,
        created_at=created,
        updated_at=created,
        resolved_at=(created + timedelta(hours=resolved_hours)) if resolved_hours is not None else None,
        sla_hours=8,
        satisfaction=satisfaction,
    )


def _session():
    asked = NOW - timedelta(days=1)
    return ChatSessionResponse(
        id="chat_1",
        customer_id="cust_1",
        status="active",
        created_at=asked,
        updated_at=asked,
        messages=[
            ChatMessageResponse(id="m1", session_id="chat_1", sender_id="cust_1", sender_type="customer",
                                content="hi", timestamp=asked),
            ChatMessageResponse(id="m2", session_id="chat_1", sender_id="agent_1", sender_type="agent",
                                content="hello", timestamp=asked + timedelta(minutes=30)),
        ],
    )


class TestDashboard(unittest.TestCase):
    def setUp(self):
        self.tickets = [
            _ticket("t1", 1, "Billing & Payments", "resolved", resolved_hours=4, satisfaction=4, agent="agent_1"),
            _ticket("t2", 2, "Billing & Payments", satisfaction=2),
            _ticket("t3", 3, "Technical Issues", "closed", resolved_hours=2, agent="agent_1"),
            _ticket("t4", 40, "Technical Issues"),
        ]
        self.agents = [AgentResponse(id="agent_1", name="Ann", status="online", created_at=NOW, last_active=NOW)]

    def test_thirty_day_window(self):
        d = analytics.build_dashboard(self.tickets, self.agents, [_session()], time_range="30d", now=NOW)
        self.assertEqual(d.total_tickets, 3)
        self.assertEqual(d.resolved_tickets, 2)
        self.assertEqual(d.avg_resolution_time, 3.0)
        self.assertEqual(d.customer_satisfaction, 3.0)
        self.assertEqual(d.avg_response_time, 0.5)
        self.assertEqual(d.agent_performance[0].tickets_resolved, 2)
        self.assertEqual(d.agent_performance[0].status, "online")

    def test_top_issues(self):
        d = analytics.build_dashboard(self.tickets, self.agents, time_range="30d", now=NOW)
        self.assertEqual([(i.category, i.count, i.percentage) for i in d.top_issues],
                         [("Billing & Payments", 2, 66.7), ("Technical Issues", 1, 33.3)])

    def test_trends_cover_last_seven_days(self):
        d = analytics.build_dashboard(self.tickets, self.agents, time_range="7d", now=NOW)
        self.assertEqual(len(d.ticket_trends), 7)
        self.assertEqual(d.ticket_trends[-1].date, "2026-03-10")
        yesterday = d.ticket_trends[-2]
        self.assertEqual((yesterday.date, yesterday.tickets, yesterday.resolved), ("2026-03-09", 1, 1))

    def test_unknown_range_falls_back(self):
        d = analytics.build_dashboard(self.tickets, self.agents, time_range="bogus", now=NOW)
        self.assertEqual(d.total_tickets, 3)
        d90 = analytics.build_dashboard(self.tickets, self.agents, time_range="90d", now=NOW)
        self.assertEqual(d90.total_tickets, 4)

    def test_empty_store(self):
        d = analytics.dashboard(InMemoryStore())
        self.assertEqual(d.total_tickets, 0)
        self.assertEqual(d.customer_satisfaction, 0.0)
        self.assertEqual(d.top_issues, [])


class TestDailyMetrics(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore()

    def test_patch_keeps_existing_fields(self):
        day = date(2026, 3, 1)
        analytics.update_analytics(self.store, day, {"total_tickets": 3, "peak_hours": [9]})
        row = analytics.update_analytics(self.store, day, {"total_tickets": None, "resolved_tickets": 1})
        self.assertEqual(row.metrics.total_tickets, 3)
        self.assertEqual(row.metrics.resolved_tickets, 1)
        self.assertEqual(row.metrics.peak_hours, [9])

    def test_refresh_from_store(self):
        manager = LifecycleManager(self.store)
        customer = manager.register_customer({"name": "Ada", "email": "ada@example.com"})
        base = {"title": "x", "description": "y", "category": "General Inquiry", "customer_id": customer.id}
        manager.create_ticket(base)
        done = manager.create_ticket(base)
        manager.update_ticket(done.id, {"status": "resolved"})
        session = manager.create_chat_session({"customer_id": customer.id})
        for sender in ("agent", "system"):
            manager.add_chat_message(
                {"session_id": session.id, "sender_id": sender, "sender_type": sender, "content": "note"}
            )

        day = done.created_at.date()
        row = analytics.refresh_daily_metrics(self.store, day)
        self.assertEqual(row.metrics.total_tickets, 2)
        self.assertEqual(row.metrics.resolved_tickets, 1)
        self.assertEqual(row.metrics.chat_volume, 2)
        self.assertEqual(row.metrics.agent_utilization, 0.0)
        self.assertIn(done.created_at.hour, row.metrics.peak_hours)
        self.assertEqual([r.date for r in analytics.get_analytics(self.store, day, day)], [day])


if __name__ == "__main__":
    unittest.main()
