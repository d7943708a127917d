# app/schemas/revision.py
from datetime import datetime

from pydantic import BaseModel, Field

from app.models.enums import RevisionStatus, SubmissionCategory


class RevisionCreate(BaseModel):
    submission_id: int
    reason: str | None = Field(default=None, max_length=2000)


class RevisionPublic(BaseModel):
    id: int
    submission_id: int
    student_id: int
    category: SubmissionCategory
    reason: str | None = None
    status: RevisionStatus

    score: int | None = None
    feedback: str | None = None
    highlights: list[str] | None = None
    highlighted_text: str | None = None
    error_message: str | None = None
    latency_ms: int | None = None
    trace_id: str | None = None

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RevisionPage(BaseModel):
    items: list[RevisionPublic]
    total: int
    total_pages: int
    page: int
    size: int
