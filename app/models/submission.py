# app/models/submission.py
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Enum,
    ForeignKey,
    JSON,
    UniqueConstraint,
)
from app.db.base_class import Base
from app.models.enums import SubmissionCategory, SubmissionStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Submission(Base):
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)

    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    submit_text = Column(Text, nullable=False)
    category = Column(Enum(SubmissionCategory), nullable=False)

    status = Column(
        Enum(SubmissionStatus),
        nullable=False,
        default=SubmissionStatus.PENDING,
        index=True,
    )

    # AI evaluation result (null until evaluated)
    score = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)
    highlights = Column(JSON, nullable=True)
    highlighted_text = Column(Text, nullable=True)

    # Media
    video_url = Column(String(1000), nullable=True)
    audio_url = Column(String(1000), nullable=True)

    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("student_id", "category", name="uq_submission_student_category"),
    )

    def __repr__(self) -> str:
        return f"<Submission(id={self.id}, student_id={self.student_id}, status={self.status})>"
