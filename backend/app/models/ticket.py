from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text

from app.core.database import Base


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(String, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String, index=True, default="open")
    priority = Column(String, index=True, default="medium")
    category = Column(String, index=True, nullable=False)
    tags = Column(JSON)
    customer_id = Column(String, ForeignKey("customers.id"), index=True, nullable=False)
    assigned_agent_id = Column(String, ForeignKey("agents.id"), index=True, nullable=True)
    created_at = Column(DateTime(timezone=True), index=True)
    updated_at = Column(DateTime(timezone=True))
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    sla_hours = Column(Integer, default=24, nullable=False)
    satisfaction = Column(Float, nullable=True)
    source = Column(String, default="web")
    # "metadata" is reserved on declarative classes
    ticket_metadata = Column("metadata", JSON)
