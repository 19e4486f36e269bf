from app.core.database import make_engine
from app.services.lifecycle import LifecycleManager
from app.services.store.sql import SqlStore


def main() -> None:
    store = SqlStore(make_engine("sqlite:///:memory:"))
    manager = LifecycleManager(store)

    customer = manager.register_customer({"name": "Ada", "email": "ada@example.com"})
    busy = manager.create_agent({"name": "A1", "email": "a1@desk.example.com", "status": "online", "current_chats": 2})
    billing = manager.create_agent(
        {"name": "A2", "email": "a2@desk.example.com", "status": "online", "skills": ["Billing"], "max_chats": 2}
    )

    base = {"description": "Card declined", "category": "Billing & Payments", "customer_id": customer.id}
    t1 = manager.create_ticket({**base, "title": "one"})
    assert t1.assigned_agent_id == billing.id, t1.assigned_agent_id

    t2 = manager.create_ticket({**base, "title": "two"})
    assert t2.assigned_agent_id == billing.id, t2.assigned_agent_id

    # skilled agent is full now; falls back to least loaded
    t3 = manager.create_ticket({**base, "title": "three"})
    assert t3.assigned_agent_id == busy.id, t3.assigned_agent_id

    for agent in manager.list_agents():
        assert agent.current_chats <= agent.max_chats, agent

    session = manager.create_chat_session({"customer_id": customer.id})
    manager.add_chat_message(
        {"session_id": session.id, "sender_id": customer.id, "sender_type": "customer", "content": "My payment failed"}
    )
    linked = manager.get_chat_session(session.id)
    assert linked.ticket_id, linked
    ticket = manager.get_ticket(linked.ticket_id)
    assert ticket.title == "Chat Support: My payment failed...", ticket.title
    assert ticket.sla_hours == 8, ticket.sla_hours


if __name__ == "__main__":
    main()
    print("OK")
