# app/models/revision.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, ForeignKey, JSON
from app.db.base_class import Base
from app.models.enums import RevisionStatus, SubmissionCategory


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Revision(Base):
    __tablename__ = "revisions"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("submissions.id"), nullable=False, index=True)

    # denormalized from the submission
    student_id = Column(Integer, nullable=False, index=True)
    category = Column(Enum(SubmissionCategory), nullable=False)

    reason = Column(Text, nullable=True)
    status = Column(
        Enum(RevisionStatus),
        nullable=False,
        default=RevisionStatus.PENDING,
        index=True,
    )

    score = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)
    highlights = Column(JSON, nullable=True)
    highlighted_text = Column(Text, nullable=True)

    error_message = Column(Text, nullable=True)
    latency_ms = Column(Integer, nullable=True)
    trace_id = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<Revision(id={self.id}, submission_id={self.submission_id}, status={self.status})>"
