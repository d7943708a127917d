# app/schemas/evaluation.py
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from app.models.enums import LogStage, LogStatus


class AIEvaluationResult(BaseModel):
    """Validated evaluator output: score is an integer in [0, 10]."""
    score: int
    feedback: str
    highlights: list[str]


class EvaluationLogPublic(BaseModel):
    id: int
    submission_id: int
    stage: LogStage
    status: LogStatus
    latency_ms: int | None = None
    request_data: Any = None
    response_data: Any = None
    error_message: str | None = None
    trace_id: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
