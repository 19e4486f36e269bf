from sqlalchemy import Column, DateTime, Integer, JSON, String

from app.core.database import Base


class Agent(Base):
    __tablename__ = "agents"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, index=True, nullable=False)
    role = Column(String, default="agent")
    status = Column(String, index=True, default="offline")
    # lower-cased category tokens, e.g. ["billing", "technical issues"]
    skills = Column(JSON)
    current_chats = Column(Integer, default=0, nullable=False)
    max_chats = Column(Integer, default=5, nullable=False)
    performance = Column(JSON)
    created_at = Column(DateTime(timezone=True))
    last_active = Column(DateTime(timezone=True))
