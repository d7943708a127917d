# app/api/v1/endpoints/submissions.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.api.deps import get_current_student, get_services
from app.core.config import settings
from app.core.exceptions import InvalidRequestError
from app.db.deps import get_db
from app.models.enums import SubmissionCategory, SubmissionStatus
from app.models.student import Student
from app.schemas.evaluation import EvaluationLogPublic
from app.schemas.submission import SubmissionCreate, SubmissionPage, SubmissionPublic, SubmitResult, VideoUpload
from app.services.container import Services
from app.services.submission_service import DEFAULT_SORT

router = APIRouter(prefix="/submissions", tags=["submissions"])


async def _read_video(video: Optional[UploadFile]) -> Optional[VideoUpload]:
    if video is None or not video.filename:
        return None
    content_type = video.content_type or ""
    if not content_type.startswith("video/"):
        raise InvalidRequestError(f"Unsupported video content type: {content_type or 'unknown'}")

    content = await video.read()
    if len(content) > settings.MAX_VIDEO_SIZE_BYTES:
        raise InvalidRequestError(
            f"Video is larger than {settings.MAX_VIDEO_SIZE_BYTES // (1024 * 1024)}MB"
        )
    if not content:
        raise InvalidRequestError("Video file is empty")
    return VideoUpload(content=content, filename=video.filename, content_type=content_type)


@router.post("", response_model=SubmitResult, status_code=status.HTTP_201_CREATED)
async def submit(
    title: str = Form(...),
    submit_text: str = Form(...),
    category: SubmissionCategory = Form(...),
    video: Optional[UploadFile] = File(default=None),
    db: Session = Depends(get_db),
    current_student: Student = Depends(get_current_student),
    services: Services = Depends(get_services),
):
    """
    Submit a text (optionally with a video) and wait for its evaluation.
    """
    try:
        obj_in = SubmissionCreate(title=title, submit_text=submit_text, category=category)
    except ValidationError as e:
        errors = [
            {"loc": ("body", *err["loc"]), "msg": err["msg"], "type": err["type"]}
            for err in e.errors()
        ]
        raise RequestValidationError(errors) from e

    upload = await _read_video(video)
    return await services.submissions.submit(
        db, student_id=current_student.id, obj_in=obj_in, video=upload
    )


@router.get("", response_model=List[SubmissionPublic])
async def list_my_submissions(
    db: Session = Depends(get_db),
    current_student: Student = Depends(get_current_student),
    services: Services = Depends(get_services),
):
    return await services.submissions.get_student_submissions(db, current_student.id)


@router.get("/all", response_model=SubmissionPage)
def list_all_submissions(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    sort: str = Query(DEFAULT_SORT),
    status_filter: Optional[SubmissionStatus] = Query(None, alias="status"),
    student_id: Optional[int] = Query(None),
    student_name: Optional[str] = Query(None),
    title: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_student: Student = Depends(get_current_student),
    services: Services = Depends(get_services),
):
    """
    Admin view over every student's submissions, with filters, sorting and paging.
    """
    return services.submissions.list_all_submissions(
        db,
        page=page,
        size=size,
        sort=sort,
        status=status_filter,
        student_id=student_id,
        student_name=student_name,
        title=title,
    )


@router.get("/{submission_id}", response_model=SubmissionPublic)
async def get_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    current_student: Student = Depends(get_current_student),
    services: Services = Depends(get_services),
):
    return await services.submissions.get_submission(db, submission_id, current_student.id)


@router.get("/{submission_id}/logs", response_model=List[EvaluationLogPublic])
def list_submission_logs(
    submission_id: int,
    db: Session = Depends(get_db),
    current_student: Student = Depends(get_current_student),
    services: Services = Depends(get_services),
):
    """
    Stage-by-stage audit trail of every evaluation of this submission.
    """
    return services.submissions.list_logs(db, submission_id, current_student.id)


@router.delete("/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    current_student: Student = Depends(get_current_student),
    services: Services = Depends(get_services),
):
    await services.submissions.delete_submission(db, submission_id, current_student.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
