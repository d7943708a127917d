# app/api/deps.py
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.db.deps import get_db
from app.models.student import Student
from app.services import submission_service
from app.services.container import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_current_student(
    x_student_id: Optional[int] = Header(default=None),
    db: Session = Depends(get_db),
) -> Student:
    """Resolve the caller from the X-Student-Id header (stand-in for token auth)."""
    if x_student_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Student-Id header is required",
        )
    student = submission_service.get_student(db, x_student_id)
    if student is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown student",
        )
    return student
