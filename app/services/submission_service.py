# app/services/submission_service.py
from datetime import datetime
from typing import Any, List, Optional, Tuple

from sqlalchemy import exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError
from app.models.enums import RevisionStatus, SubmissionCategory, SubmissionStatus
from app.models.evaluation_log import EvaluationLog
from app.models.revision import Revision
from app.models.student import Student
from app.models.submission import Submission
from app.schemas.student import StudentCreate
from app.schemas.submission import SubmissionCreate
from app.services.pagination import paginate, parse_sort


DEFAULT_SORT = "created_at,DESC"

SORTABLE_FIELDS = {
    "id": Submission.id,
    "created_at": Submission.created_at,
    "updated_at": Submission.updated_at,
    "score": Submission.score,
    "title": Submission.title,
    "status": Submission.status,
}


def _duplicate_message(category: SubmissionCategory) -> str:
    return f"A {category.value} submission already exists for this student"


# ---- students ----

def create_student(db: Session, obj_in: StudentCreate) -> Student:
    if db.query(Student).filter(Student.email == obj_in.email).first():
        raise ConflictError(f"Student with email {obj_in.email} already exists")
    student = Student(name=obj_in.name, email=obj_in.email)
    db.add(student)
    db.commit()
    db.refresh(student)
    return student


def get_student(db: Session, student_id: int) -> Optional[Student]:
    return db.get(Student, student_id)


# ---- submissions ----

def create_submission(db: Session, *, student_id: int, obj_in: SubmissionCreate) -> Submission:
    """
    Existence check and insert in one transaction.

    The unique constraint on (student_id, category) backs the check up when two
    processes race; its IntegrityError is reported as the same conflict.
    """
    duplicate = (
        db.query(Submission.id)
        .filter(
            Submission.student_id == student_id,
            Submission.category == obj_in.category,
        )
        .first()
    )
    if duplicate:
        db.rollback()
        raise ConflictError(_duplicate_message(obj_in.category))

    submission = Submission(
        student_id=student_id,
        title=obj_in.title,
        submit_text=obj_in.submit_text,
        category=obj_in.category,
        status=SubmissionStatus.PENDING,
    )
    db.add(submission)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError(_duplicate_message(obj_in.category)) from e
    db.refresh(submission)
    return submission


def get_submission(db: Session, submission_id: int) -> Optional[Submission]:
    return db.get(Submission, submission_id)


def get_submission_for_student(db: Session, submission_id: int, student_id: int) -> Submission:
    submission = (
        db.query(Submission)
        .filter(Submission.id == submission_id, Submission.student_id == student_id)
        .first()
    )
    if submission is None:
        raise NotFoundError(f"Submission {submission_id} not found")
    return submission


def list_submissions_for_student(db: Session, student_id: int) -> List[Submission]:
    return (
        db.query(Submission)
        .filter(Submission.student_id == student_id)
        .order_by(Submission.created_at.desc(), Submission.id.desc())
        .all()
    )


def list_submissions(
    db: Session,
    *,
    page: int = 1,
    size: int = 20,
    sort: Optional[str] = DEFAULT_SORT,
    status: Optional[SubmissionStatus] = None,
    student_id: Optional[int] = None,
    student_name: Optional[str] = None,
    title: Optional[str] = None,
) -> Tuple[List[Submission], int, int]:
    """
    Every student's submissions, filtered and paged. Name and title filters are
    case-insensitive substring matches. Returns (items, total, total_pages).
    """
    field, direction = parse_sort(sort, SORTABLE_FIELDS, default=DEFAULT_SORT, subject="submissions")

    query = db.query(Submission)
    if status is not None:
        query = query.filter(Submission.status == status)
    if student_id is not None:
        query = query.filter(Submission.student_id == student_id)
    if student_name:
        query = query.join(Student, Student.id == Submission.student_id).filter(
            Student.name.ilike(f"%{student_name}%")
        )
    if title:
        query = query.filter(Submission.title.ilike(f"%{title}%"))

    return paginate(query, SORTABLE_FIELDS[field], Submission.id, direction, page=page, size=size)


def update_submission(db: Session, submission: Submission, **fields: Any) -> Submission:
    for field, value in fields.items():
        setattr(submission, field, value)
    db.add(submission)
    db.commit()
    db.refresh(submission)
    return submission


def list_retry_candidates(db: Session, *, older_than: datetime, limit: int) -> List[Submission]:
    """
    FAILED submissions untouched since `older_than`, oldest first.

    Submissions with a revision currently IN_PROGRESS are left to that revision.
    """
    in_progress = exists().where(
        Revision.submission_id == Submission.id,
        Revision.status == RevisionStatus.IN_PROGRESS,
    )
    return (
        db.query(Submission)
        .filter(
            Submission.status == SubmissionStatus.FAILED,
            Submission.updated_at < older_than,
            ~in_progress,
        )
        .order_by(Submission.updated_at.asc(), Submission.id.asc())
        .limit(limit)
        .all()
    )


def delete_submission(db: Session, submission: Submission, *, commit: bool = True) -> None:
    # children first: logs, then revisions, then the submission itself
    db.query(EvaluationLog).filter(EvaluationLog.submission_id == submission.id).delete(
        synchronize_session=False
    )
    db.query(Revision).filter(Revision.submission_id == submission.id).delete(
        synchronize_session=False
    )
    db.delete(submission)
    if commit:
        db.commit()


def delete_student(db: Session, student: Student) -> List[int]:
    """Delete a student and everything hanging off their submissions; returns the removed submission ids."""
    removed = []
    for submission in list_submissions_for_student(db, student.id):
        removed.append(submission.id)
        delete_submission(db, submission, commit=False)
    db.delete(student)
    db.commit()
    return removed
