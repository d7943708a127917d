# app/schemas/submission.py
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.models.enums import SubmissionCategory, SubmissionStatus


class SubmissionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    submit_text: str = Field(min_length=10, max_length=10000)
    category: SubmissionCategory

    @field_validator("title", "submit_text")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class VideoUpload(BaseModel):
    """Raw video received with a submission."""
    content: bytes
    filename: str | None = None
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)


class SubmissionPublic(BaseModel):
    id: int
    student_id: int
    title: str
    submit_text: str
    category: SubmissionCategory
    status: SubmissionStatus

    score: int | None = None
    feedback: str | None = None
    highlights: list[str] | None = None
    highlighted_text: str | None = None
    video_url: str | None = None
    audio_url: str | None = None
    error_message: str | None = None

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SubmitResult(BaseModel):
    """Outcome of the synchronous submit call."""
    submission_id: int
    student_id: int
    status: SubmissionStatus
    message: str | None = None

    score: int | None = None
    feedback: str | None = None
    highlights: list[str] | None = None
    submit_text: str
    highlighted_text: str | None = None
    video_url: str | None = None
    audio_url: str | None = None

    latency_ms: int


class SubmissionPage(BaseModel):
    items: list[SubmissionPublic]
    total: int
    total_pages: int
    page: int
    size: int
