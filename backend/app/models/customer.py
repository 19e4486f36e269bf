from sqlalchemy import Column, DateTime, JSON, String

from app.core.database import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, nullable=True)
    company = Column(String, nullable=True)
    avatar = Column(String, nullable=True)
    status = Column(String, index=True, default="active")
    preferences = Column(JSON)
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True))
    last_login = Column(DateTime(timezone=True), nullable=True)
