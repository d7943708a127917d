# app/models/evaluation_log.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, ForeignKey, JSON
from app.db.base_class import Base
from app.models.enums import LogStage, LogStatus


class EvaluationLog(Base):
    """Append-only audit entry for one pipeline stage event."""

    __tablename__ = "evaluation_logs"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("submissions.id"), nullable=False, index=True)

    stage = Column(Enum(LogStage), nullable=False)
    status = Column(Enum(LogStatus), nullable=False)

    latency_ms = Column(Integer, nullable=True)
    request_data = Column(JSON, nullable=True)
    response_data = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    trace_id = Column(String(100), nullable=True, index=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
