from datetime import date as date_type
from typing import List, Optional

from pydantic import BaseModel, Field


class AnalyticsMetrics(BaseModel):
    total_tickets: int = 0
    resolved_tickets: int = 0
    avg_resolution_time: float = 0.0
    customer_satisfaction: float = 0.0
    agent_utilization: float = 0.0
    first_response_time: float = 0.0
    chat_volume: int = 0
    peak_hours: List[int] = Field(default_factory=list)


class AnalyticsTrends(BaseModel):
    ticket_volume: List[float] = Field(default_factory=list)
    response_times: List[float] = Field(default_factory=list)
    satisfaction: List[float] = Field(default_factory=list)


class AnalyticsMetricsPatch(BaseModel):
    total_tickets: Optional[int] = None
    resolved_tickets: Optional[int] = None
    avg_resolution_time: Optional[float] = None
    customer_satisfaction: Optional[float] = None
    agent_utilization: Optional[float] = None
    first_response_time: Optional[float] = None
    chat_volume: Optional[int] = None
    peak_hours: Optional[List[int]] = None


class AnalyticsUpsert(BaseModel):
    date: date_type
    metrics: AnalyticsMetricsPatch


class AnalyticsResponse(BaseModel):
    id: str
    date: date_type
    metrics: AnalyticsMetrics = Field(default_factory=AnalyticsMetrics)
    trends: AnalyticsTrends = Field(default_factory=AnalyticsTrends)

    class Config:
        from_attributes = True


class AgentPerformanceRow(BaseModel):
    id: str
    name: str
    tickets_resolved: int
    avg_response_time: float
    satisfaction: float
    status: str


class TicketTrendPoint(BaseModel):
    date: str
    tickets: int
    resolved: int


class TopIssue(BaseModel):
    category: str
    count: int
    percentage: float


class DashboardResponse(BaseModel):
    total_tickets: int
    resolved_tickets: int
    avg_response_time: float
    avg_resolution_time: float
    customer_satisfaction: float
    agent_performance: List[AgentPerformanceRow]
    ticket_trends: List[TicketTrendPoint]
    top_issues: List[TopIssue]
