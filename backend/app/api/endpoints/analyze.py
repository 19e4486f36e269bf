from __future__ import annotations

from typing import Any, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.schemas.analysis import AnalysisResult, AnalyzeRequest, RelatedTicket
from app.services.analysis.client import AnalysisService, get_analysis_service
from app.services.analysis.normalizer import map_similar_tickets


router = APIRouter()


class RelatedTicketsRequest(BaseModel):
    similar: List[Any] = Field(default_factory=list)


@router.post(
    "/analyze",
    response_model=AnalysisResult,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def analyze(payload: AnalyzeRequest, service: AnalysisService = Depends(get_analysis_service)):
    return await service.analyze(
        payload.query,
        language=payload.language,
        task_type=payload.task_type,
        media=payload.media,
    )


@router.post("/analyze/related", response_model=list[RelatedTicket])
async def related_tickets(payload: RelatedTicketsRequest):
    return map_similar_tickets(payload.similar)
