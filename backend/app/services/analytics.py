from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any

from app.schemas.agent import AgentResponse
from app.schemas.analytics import (
    AgentPerformanceRow,
    AnalyticsMetricsPatch,
    AnalyticsResponse,
    DashboardResponse,
    TicketTrendPoint,
    TopIssue,
)
from app.schemas.chat import ChatSessionResponse
from app.schemas.common import RESOLVED_STATUSES, SenderType
from app.schemas.ticket import TicketResponse
from app.services.store.base import EntityStore, utcnow


TIME_RANGES: dict[str, int] = {"7d": 7, "30d": 30, "90d": 90}
DEFAULT_TIME_RANGE = "30d"
TREND_DAYS = 7
TOP_ISSUES = 5


def range_start(time_range: str | None, now: datetime | None = None) -> datetime:
    now = now or utcnow()
    days = TIME_RANGES.get((time_range or "").strip().lower(), TIME_RANGES[DEFAULT_TIME_RANGE])
    return now - timedelta(days=days)


def _hours(delta: timedelta) -> float:
    return delta.total_seconds() / 3600.0


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _is_resolved(ticket: TicketResponse) -> bool:
    return ticket.status in RESOLVED_STATUSES


def avg_resolution_hours(tickets: list[TicketResponse]) -> float:
    return _mean([_hours(t.resolved_at - t.created_at) for t in tickets if t.resolved_at is not None])


def avg_satisfaction(tickets: list[TicketResponse]) -> float:
    return _mean([float(t.satisfaction) for t in tickets if t.satisfaction is not None])


def first_response_hours(sessions: list[ChatSessionResponse]) -> float:
    """Mean wait between a session's first customer message and the first agent reply after it."""
    waits: list[float] = []
    for s in sessions:
        asked_at = None
        for m in s.messages:
            if asked_at is None and m.sender_type == SenderType.CUSTOMER:
                asked_at = m.timestamp
            elif asked_at is not None and m.sender_type == SenderType.AGENT:
                waits.append(_hours(m.timestamp - asked_at))
                break
    return _mean(waits)


def ticket_trends(tickets: list[TicketResponse], now: datetime | None = None, days: int = TREND_DAYS) -> list[TicketTrendPoint]:
    now = now or utcnow()
    by_day: dict[date, list[TicketResponse]] = {}
    for t in tickets:
        by_day.setdefault(t.created_at.date(), []).append(t)
    points: list[TicketTrendPoint] = []
    for i in range(days - 1, -1, -1):
        day = (now - timedelta(days=i)).date()
        day_tickets = by_day.get(day, [])
        points.append(
            TicketTrendPoint(
                date=day.isoformat(),
                tickets=len(day_tickets),
                resolved=sum(1 for t in day_tickets if _is_resolved(t)),
            )
        )
    return points


def top_issues(tickets: list[TicketResponse], limit: int = TOP_ISSUES) -> list[TopIssue]:
    total = len(tickets)
    counts = Counter(t.category for t in tickets)
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:limit]
    return [
        TopIssue(category=c, count=n, percentage=(round(n / total * 100, 1) if total else 0.0))
        for c, n in ranked
    ]


def agent_performance(agents: list[AgentResponse], tickets: list[TicketResponse]) -> list[AgentPerformanceRow]:
    resolved_by_agent = Counter(t.assigned_agent_id for t in tickets if t.assigned_agent_id and _is_resolved(t))
    return [
        AgentPerformanceRow(
            id=a.id,
            name=a.name or "Unknown",
            tickets_resolved=resolved_by_agent.get(a.id, 0),
            avg_response_time=a.performance.avg_response_time,
            satisfaction=a.performance.satisfaction_score,
            status=a.status.value,
        )
        for a in agents
    ]


def build_dashboard(
    tickets: list[TicketResponse],
    agents: list[AgentResponse],
    sessions: list[ChatSessionResponse] | None = None,
    *,
    time_range: str | None = DEFAULT_TIME_RANGE,
    now: datetime | None = None,
) -> DashboardResponse:
    now = now or utcnow()
    start = range_start(time_range, now)
    in_range = [t for t in tickets if start <= t.created_at <= now]
    sessions_in_range = [s for s in (sessions or []) if start <= s.created_at <= now]

    return DashboardResponse(
        total_tickets=len(in_range),
        resolved_tickets=sum(1 for t in in_range if _is_resolved(t)),
        avg_response_time=round(first_response_hours(sessions_in_range), 1),
        avg_resolution_time=round(avg_resolution_hours(in_range), 1),
        customer_satisfaction=round(avg_satisfaction(in_range), 1),
        agent_performance=agent_performance(agents, in_range),
        ticket_trends=ticket_trends(in_range, now),
        top_issues=top_issues(in_range),
    )


def dashboard(store: EntityStore, time_range: str | None = DEFAULT_TIME_RANGE) -> DashboardResponse:
    return build_dashboard(
        store.list_tickets(),
        store.list_agents(),
        store.list_chat_sessions(),
        time_range=time_range,
    )


def update_analytics(store: EntityStore, day: date, metrics: AnalyticsMetricsPatch | dict[str, Any]) -> AnalyticsResponse:
    if isinstance(metrics, dict):
        metrics = AnalyticsMetricsPatch.model_validate(metrics)
    return store.upsert_analytics(day, metrics.model_dump(exclude_none=True))


def get_analytics(store: EntityStore, start: date | None = None, end: date | None = None) -> list[AnalyticsResponse]:
    return store.list_analytics(start, end)


def refresh_daily_metrics(store: EntityStore, day: date) -> AnalyticsResponse:
    """Recompute one day's ticket and chat metrics from the store and merge them in."""
    tickets = [t for t in store.list_tickets() if t.created_at.date() == day]
    sessions = [s for s in store.list_chat_sessions() if s.created_at.date() == day]
    agents = store.list_agents()
    capacity = sum(a.max_chats for a in agents)
    hours = Counter(t.created_at.hour for t in tickets)
    peak = sorted(hours, key=lambda h: (-hours[h], h))[:3]

    patch = AnalyticsMetricsPatch(
        total_tickets=len(tickets),
        resolved_tickets=sum(1 for t in tickets if _is_resolved(t)),
        avg_resolution_time=round(avg_resolution_hours(tickets), 2),
        customer_satisfaction=round(avg_satisfaction(tickets), 2),
        agent_utilization=round(sum(a.current_chats for a in agents) / capacity, 4) if capacity else 0.0,
        first_response_time=round(first_response_hours(sessions), 2),
        chat_volume=sum(len(s.messages) for s in sessions),
        peak_hours=peak,
    )
    return update_analytics(store, day, patch)
