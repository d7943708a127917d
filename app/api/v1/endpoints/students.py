# app/api/v1/endpoints/students.py
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_student, get_services
from app.db.deps import get_db
from app.models.student import Student
from app.schemas.student import StudentCreate, StudentPublic
from app.services import submission_service
from app.services.container import Services

router = APIRouter(prefix="/students", tags=["students"])


@router.post("", response_model=StudentPublic, status_code=status.HTTP_201_CREATED)
def create_student(obj_in: StudentCreate, db: Session = Depends(get_db)):
    return submission_service.create_student(db, obj_in)


@router.get("/me", response_model=StudentPublic)
def read_me(current_student: Student = Depends(get_current_student)):
    return current_student


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_student(
    student_id: int,
    db: Session = Depends(get_db),
    current_student: Student = Depends(get_current_student),
    services: Services = Depends(get_services),
):
    """
    Delete the caller's account together with their submissions, logs and revisions.
    """
    if student_id != current_student.id:
        raise HTTPException(status_code=403, detail="Not allowed to delete another student")
    await services.submissions.delete_student(db, current_student)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
