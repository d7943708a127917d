# app/services/revision_service.py
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from sqlalchemy import exists
from sqlalchemy.orm import Session, aliased

from app.core.exceptions import ConflictError, NotFoundError
from app.models.enums import RevisionStatus
from app.models.revision import Revision
from app.models.submission import Submission
from app.services.pagination import paginate, parse_sort

DEFAULT_SORT = "created_at,DESC"

SORTABLE_FIELDS = {
    "id": Revision.id,
    "created_at": Revision.created_at,
    "updated_at": Revision.updated_at,
    "status": Revision.status,
    "score": Revision.score,
    "submission_id": Revision.submission_id,
}


def has_revision_in_progress(db: Session, submission_id: int) -> bool:
    return (
        db.query(Revision.id)
        .filter(
            Revision.submission_id == submission_id,
            Revision.status == RevisionStatus.IN_PROGRESS,
        )
        .first()
        is not None
    )


def create_revision_record(
    db: Session,
    submission: Submission,
    *,
    reason: Optional[str],
    status: RevisionStatus = RevisionStatus.PENDING,
    commit: bool = True,
    **fields: Any,
) -> Revision:
    revision = Revision(
        submission_id=submission.id,
        student_id=submission.student_id,
        category=submission.category,
        reason=reason,
        status=status,
        **fields,
    )
    db.add(revision)
    if commit:
        db.commit()
        db.refresh(revision)
    return revision


def create_revision_checked(
    db: Session,
    submission_id: int,
    *,
    reason: Optional[str] = None,
    student_id: Optional[int] = None,
) -> Revision:
    """
    Existence check, in-progress check and insert, committed together.

    Raises:
        NotFoundError: unknown submission (or owned by another student)
        ConflictError: a revision of this submission is already IN_PROGRESS
    """
    query = db.query(Submission).filter(Submission.id == submission_id)
    if student_id is not None:
        query = query.filter(Submission.student_id == student_id)
    submission = query.first()
    if submission is None:
        db.rollback()
        raise NotFoundError(f"Submission {submission_id} not found")

    if has_revision_in_progress(db, submission_id):
        db.rollback()
        raise ConflictError(f"A revision for submission {submission_id} is already in progress")

    return create_revision_record(db, submission, reason=reason)


def claim_revision(db: Session, revision_id: int, *, trace_id: Optional[str] = None) -> bool:
    """
    PENDING -> IN_PROGRESS as a single conditional UPDATE.

    The row is only claimed when no other revision of the same submission is
    IN_PROGRESS, so two revisions created back-to-back cannot both run.
    """
    other = aliased(Revision)
    busy = exists().where(
        other.submission_id == Revision.submission_id,
        other.status == RevisionStatus.IN_PROGRESS,
        other.id != revision_id,
    )
    updated = (
        db.query(Revision)
        .filter(
            Revision.id == revision_id,
            Revision.status == RevisionStatus.PENDING,
            ~busy,
        )
        .update(
            {
                Revision.status: RevisionStatus.IN_PROGRESS,
                Revision.trace_id: trace_id,
                Revision.updated_at: datetime.now(timezone.utc),
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return updated == 1


def get_revision(db: Session, revision_id: int, *, student_id: Optional[int] = None) -> Revision:
    query = db.query(Revision).filter(Revision.id == revision_id)
    if student_id is not None:
        query = query.filter(Revision.student_id == student_id)
    revision = query.first()
    if revision is None:
        raise NotFoundError(f"Revision {revision_id} not found")
    return revision


def update_revision(db: Session, revision: Revision, **fields: Any) -> Revision:
    for field, value in fields.items():
        setattr(revision, field, value)
    db.add(revision)
    db.commit()
    db.refresh(revision)
    return revision


def list_revisions(
    db: Session,
    *,
    page: int = 1,
    size: int = 20,
    sort: Optional[str] = DEFAULT_SORT,
    student_id: Optional[int] = None,
) -> Tuple[List[Revision], int, int]:
    """Returns (items, total, total_pages)."""
    field, direction = parse_sort(sort, SORTABLE_FIELDS, default=DEFAULT_SORT, subject="revisions")

    query = db.query(Revision)
    if student_id is not None:
        query = query.filter(Revision.student_id == student_id)

    return paginate(query, SORTABLE_FIELDS[field], Revision.id, direction, page=page, size=size)
