"""create students, submissions, evaluation_logs and revisions

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 10:12:31.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CATEGORY = sa.Enum("WRITING", "SPEAKING", "READING", "LISTENING", name="submissioncategory")
SUBMISSION_STATUS = sa.Enum("PENDING", "PROCESSING", "COMPLETED", "FAILED", name="submissionstatus")
REVISION_STATUS = sa.Enum("PENDING", "IN_PROGRESS", "COMPLETED", "FAILED", name="revisionstatus")
LOG_STAGE = sa.Enum(
    "VIDEO_PROCESSING", "BLOB_UPLOAD", "AI_EVALUATION", "TEXT_HIGHLIGHTING", name="logstage"
)
LOG_STATUS = sa.Enum("STARTED", "SUCCESS", "FAILED", name="logstatus")


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_students_id", "students", ["id"])
    op.create_index("ix_students_email", "students", ["email"], unique=True)

    op.create_table(
        "submissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("submit_text", sa.Text(), nullable=False),
        sa.Column("category", CATEGORY, nullable=False),
        sa.Column("status", SUBMISSION_STATUS, nullable=False),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("highlights", sa.JSON(), nullable=True),
        sa.Column("highlighted_text", sa.Text(), nullable=True),
        sa.Column("video_url", sa.String(length=1000), nullable=True),
        sa.Column("audio_url", sa.String(length=1000), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("student_id", "category", name="uq_submission_student_category"),
    )
    op.create_index("ix_submissions_id", "submissions", ["id"])
    op.create_index("ix_submissions_student_id", "submissions", ["student_id"])
    op.create_index("ix_submissions_status", "submissions", ["status"])
    op.create_index("ix_submissions_updated_at", "submissions", ["updated_at"])

    op.create_table(
        "evaluation_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("submission_id", sa.Integer(), sa.ForeignKey("submissions.id"), nullable=False),
        sa.Column("stage", LOG_STAGE, nullable=False),
        sa.Column("status", LOG_STATUS, nullable=False),
        sa.Column("latency_ms", sa.Integer(), nullable=True),
        sa.Column("request_data", sa.JSON(), nullable=True),
        sa.Column("response_data", sa.JSON(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("trace_id", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_evaluation_logs_id", "evaluation_logs", ["id"])
    op.create_index("ix_evaluation_logs_submission_id", "evaluation_logs", ["submission_id"])
    op.create_index("ix_evaluation_logs_trace_id", "evaluation_logs", ["trace_id"])

    op.create_table(
        "revisions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("submission_id", sa.Integer(), sa.ForeignKey("submissions.id"), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("category", CATEGORY, nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", REVISION_STATUS, nullable=False),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("highlights", sa.JSON(), nullable=True),
        sa.Column("highlighted_text", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("latency_ms", sa.Integer(), nullable=True),
        sa.Column("trace_id", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_revisions_id", "revisions", ["id"])
    op.create_index("ix_revisions_submission_id", "revisions", ["submission_id"])
    op.create_index("ix_revisions_student_id", "revisions", ["student_id"])
    op.create_index("ix_revisions_status", "revisions", ["status"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("revisions")
    op.drop_table("evaluation_logs")
    op.drop_table("submissions")
    op.drop_table("students")
    bind = op.get_bind()
    for enum in (LOG_STATUS, LOG_STAGE, REVISION_STATUS, SUBMISSION_STATUS, CATEGORY):
        enum.drop(bind, checkfirst=True)
