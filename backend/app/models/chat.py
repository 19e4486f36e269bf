from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from app.core.database import Base


class ChatSession(Base):
    __tablename__ = "chat_sessions"

    id = Column(String, primary_key=True, index=True)
    ticket_id = Column(String, ForeignKey("tickets.id"), index=True, nullable=True)
    customer_id = Column(String, ForeignKey("customers.id"), index=True, nullable=False)
    agent_id = Column(String, ForeignKey("agents.id"), index=True, nullable=True)
    status = Column(String, index=True, default="active")
    priority = Column(String, default="medium")
    created_at = Column(DateTime(timezone=True), index=True)
    updated_at = Column(DateTime(timezone=True))
    ended_at = Column(DateTime(timezone=True), nullable=True)
    rating = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)

    messages = relationship(
        "ChatMessage",
        back_populates="session",
        order_by="ChatMessage.position",
        cascade="all, delete-orphan",
    )


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(String, primary_key=True, index=True)
    session_id = Column(String, ForeignKey("chat_sessions.id"), index=True, nullable=False)
    # insertion order within the session
    position = Column(Integer, nullable=False, default=0)
    sender_id = Column(String, index=True, nullable=False)
    sender_type = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    type = Column(String, default="text")
    timestamp = Column(DateTime(timezone=True))
    message_metadata = Column("metadata", JSON, nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    edited = Column(Boolean, nullable=True)
    edited_at = Column(DateTime(timezone=True), nullable=True)

    session = relationship("ChatSession", back_populates="messages")
