# app/api/v1/endpoints/revisions.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_student, get_services
from app.db.deps import get_db
from app.models.student import Student
from app.schemas.revision import RevisionCreate, RevisionPage, RevisionPublic
from app.services.container import Services
from app.services.revision_service import DEFAULT_SORT

router = APIRouter(prefix="/revisions", tags=["revisions"])


@router.post("", response_model=RevisionPublic, status_code=status.HTTP_202_ACCEPTED)
async def create_revision(
    obj_in: RevisionCreate,
    db: Session = Depends(get_db),
    current_student: Student = Depends(get_current_student),
    services: Services = Depends(get_services),
):
    """
    Request a re-evaluation; the revision is processed in the background.
    Poll GET /revisions/{id} for the result.
    """
    return await services.revisions.create_revision(
        db, obj_in.submission_id, obj_in.reason, student_id=current_student.id
    )


@router.get("", response_model=RevisionPage)
def list_revisions(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    sort: str = Query(DEFAULT_SORT),
    db: Session = Depends(get_db),
    current_student: Student = Depends(get_current_student),
    services: Services = Depends(get_services),
):
    return services.revisions.list_revisions(
        db, page=page, size=size, sort=sort, student_id=current_student.id
    )


@router.get("/{revision_id}", response_model=RevisionPublic)
def get_revision(
    revision_id: int,
    db: Session = Depends(get_db),
    current_student: Student = Depends(get_current_student),
    services: Services = Depends(get_services),
):
    return services.revisions.get_revision(db, revision_id, student_id=current_student.id)
