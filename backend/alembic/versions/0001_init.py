"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _inspector():
    from sqlalchemy import inspect as sa_inspect
    return sa_inspect(op.get_bind())


def upgrade() -> None:
    inspector = _inspector()
    existing_tables = set(inspector.get_table_names())

    def existing_indexes(table: str) -> set[str]:
        if table not in existing_tables:
            return set()
        return {idx["name"] for idx in inspector.get_indexes(table)}

    def ensure_indexes(table: str, columns: list[str]) -> None:
        idxs = existing_indexes(table)
        for col in columns:
            name = f"ix_{table}_{col}"
            if name not in idxs:
                op.create_index(name, table, [col])

    if "customers" not in existing_tables:
        op.create_table(
            "customers",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("phone", sa.String(), nullable=True),
            sa.Column("company", sa.String(), nullable=True),
            sa.Column("avatar", sa.String(), nullable=True),
            sa.Column("status", sa.String(), nullable=True),
            sa.Column("preferences", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        )
    ensure_indexes("customers", ["id", "status"])
    if "ix_customers_email" not in existing_indexes("customers"):
        op.create_index("ix_customers_email", "customers", ["email"], unique=True)

    if "agents" not in existing_tables:
        op.create_table(
            "agents",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("role", sa.String(), nullable=True),
            sa.Column("status", sa.String(), nullable=True),
            sa.Column("skills", sa.JSON(), nullable=True),
            sa.Column("current_chats", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("max_chats", sa.Integer(), nullable=False, server_default="5"),
            sa.Column("performance", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_active", sa.DateTime(timezone=True), nullable=True),
        )
    ensure_indexes("agents", ["id", "email", "status"])

    if "tickets" not in existing_tables:
        op.create_table(
            "tickets",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("status", sa.String(), nullable=True),
            sa.Column("priority", sa.String(), nullable=True),
            sa.Column("category", sa.String(), nullable=False),
            sa.Column("tags", sa.JSON(), nullable=True),
            sa.Column("customer_id", sa.String(), sa.ForeignKey("customers.id"), nullable=False),
            sa.Column("assigned_agent_id", sa.String(), sa.ForeignKey("agents.id"), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("sla_hours", sa.Integer(), nullable=False, server_default="24"),
            sa.Column("satisfaction", sa.Float(), nullable=True),
            sa.Column("source", sa.String(), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
        )
    ensure_indexes("tickets", ["id", "status", "priority", "category", "customer_id", "assigned_agent_id", "created_at"])

    if "chat_sessions" not in existing_tables:
        op.create_table(
            "chat_sessions",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("ticket_id", sa.String(), sa.ForeignKey("tickets.id"), nullable=True),
            sa.Column("customer_id", sa.String(), sa.ForeignKey("customers.id"), nullable=False),
            sa.Column("agent_id", sa.String(), sa.ForeignKey("agents.id"), nullable=True),
            sa.Column("status", sa.String(), nullable=True),
            sa.Column("priority", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("rating", sa.Integer(), nullable=True),
            sa.Column("feedback", sa.Text(), nullable=True),
        )
    ensure_indexes("chat_sessions", ["id", "ticket_id", "customer_id", "agent_id", "status", "created_at"])

    if "chat_messages" not in existing_tables:
        op.create_table(
            "chat_messages",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("session_id", sa.String(), sa.ForeignKey("chat_sessions.id"), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("sender_id", sa.String(), nullable=False),
            sa.Column("sender_type", sa.String(), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("type", sa.String(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("edited", sa.Boolean(), nullable=True),
            sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        )
    ensure_indexes("chat_messages", ["id", "session_id", "sender_id"])

    if "analytics_daily" not in existing_tables:
        op.create_table(
            "analytics_daily",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("date", sa.Date(), nullable=False),
            sa.Column("metrics", sa.JSON(), nullable=True),
            sa.Column("trends", sa.JSON(), nullable=True),
        )
    ensure_indexes("analytics_daily", ["id", "date"])


def downgrade() -> None:
    inspector = _inspector()
    existing_tables = set(inspector.get_table_names())
    for table in ["chat_messages", "chat_sessions", "tickets", "analytics_daily", "agents", "customers"]:
        if table in existing_tables:
            op.drop_table(table)
