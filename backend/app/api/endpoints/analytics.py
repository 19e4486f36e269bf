from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.errors import ValidationError
from app.schemas.analytics import AnalyticsMetricsPatch, AnalyticsResponse, AnalyticsUpsert, DashboardResponse
from app.services import analytics
from app.services.store.base import EntityStore
from app.services.store.provider import get_store


router = APIRouter()


@router.get("/analytics/dashboard", response_model=DashboardResponse)
async def dashboard(
    time_range: str = Query(default=analytics.DEFAULT_TIME_RANGE, alias="timeRange"),
    store: EntityStore = Depends(get_store),
):
    return analytics.dashboard(store, time_range)


@router.get("/analytics", response_model=list[AnalyticsResponse])
async def list_analytics(
    start: Optional[date] = Query(default=None),
    end: Optional[date] = Query(default=None),
    store: EntityStore = Depends(get_store),
):
    if start is not None and end is not None and start > end:
        raise ValidationError("start must not be after end", details={"start": start.isoformat(), "end": end.isoformat()})
    return analytics.get_analytics(store, start, end)


@router.put("/analytics", response_model=AnalyticsResponse)
async def upsert_analytics(payload: AnalyticsUpsert, store: EntityStore = Depends(get_store)):
    return analytics.update_analytics(store, payload.date, payload.metrics)


@router.patch("/analytics/{day}", response_model=AnalyticsResponse)
async def patch_day(day: date, payload: AnalyticsMetricsPatch, store: EntityStore = Depends(get_store)):
    return analytics.update_analytics(store, day, payload)


@router.post("/analytics/{day}/refresh", response_model=AnalyticsResponse)
async def refresh_day(day: date, store: EntityStore = Depends(get_store)):
    return analytics.refresh_daily_metrics(store, day)
