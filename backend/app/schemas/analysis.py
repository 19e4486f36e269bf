from typing import Any, List, Optional

from pydantic import BaseModel, Field


class AnalyzeRequest(BaseModel):
    query: Any = None
    language: Optional[str] = None
    task_type: Optional[str] = Field(default=None, alias="taskType")
    media: List[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class AnalysisResult(BaseModel):
    """Caller-facing analysis shape. Empty fields mean "not yet available"."""

    success: bool = True
    answer: str = ""
    nba: List[str] = Field(default_factory=list)
    proposed_questions: List[str] = Field(default_factory=list, alias="proposedQuestions")
    similar: List[Any] = Field(default_factory=list)
    suggested: Optional[str] = None
    error: Optional[str] = None

    class Config:
        populate_by_name = True


class RelatedTicket(BaseModel):
    id: str
    ticket_id: str
    title: str
    issue_desc: str
    date: str
    relevance: int
    link: str
    resolve_comment_cs: List[str] = Field(default_factory=list)
    snippet: str = ""
    created_at: Optional[str] = None
    screen_id: Optional[str] = None
    image_url: List[str] = Field(default_factory=list)
