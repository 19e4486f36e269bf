from sqlalchemy import Column, Date, JSON, String

from app.core.database import Base


class AnalyticsDaily(Base):
    __tablename__ = "analytics_daily"

    # ISO date, one row per calendar day
    id = Column(String, primary_key=True, index=True)
    date = Column(Date, index=True, nullable=False)
    metrics = Column(JSON)
    trends = Column(JSON)
