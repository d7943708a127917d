# app/services/revision_orchestrator.py
import asyncio
import logging
import time
import uuid
from typing import Callable, Optional, Set

from sqlalchemy.orm import Session

from app.core.exceptions import describe_error
from app.core.side_calls import best_effort
from app.models.enums import RevisionStatus, SubmissionStatus
from app.schemas.revision import RevisionPage, RevisionPublic
from app.services import revision_service, submission_service
from app.services.cache_service import CacheService
from app.services.evaluation_pipeline import EvaluationPipeline
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class RevisionOrchestrator:
    """
    On-demand re-evaluation of an existing submission.

    create_revision() returns as soon as the PENDING row is committed; the pipeline
    then runs in a background task with its own session. With background=False the
    pipeline is awaited inline instead.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        pipeline: EvaluationPipeline,
        notifier: NotificationService,
        cache: CacheService,
        *,
        background: bool = True,
    ):
        self.session_factory = session_factory
        self.pipeline = pipeline
        self.notifier = notifier
        self.cache = cache
        self.background = background
        # strong references so running tasks are not garbage collected
        self._tasks: Set[asyncio.Task] = set()

    async def create_revision(
        self,
        db: Session,
        submission_id: int,
        reason: Optional[str] = None,
        *,
        student_id: Optional[int] = None,
    ) -> RevisionPublic:
        revision = revision_service.create_revision_checked(
            db, submission_id, reason=reason, student_id=student_id
        )
        logger.info(f"Revision {revision.id} created for submission {submission_id}")

        if not self.background:
            await self.process_revision(revision.id)
            db.refresh(revision)
            return RevisionPublic.model_validate(revision)

        summary = RevisionPublic.model_validate(revision)
        task = asyncio.create_task(self.process_revision(revision.id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return summary

    async def wait_for_background(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def process_revision(self, revision_id: int) -> None:
        """Drive one revision to COMPLETED or FAILED. Never raises."""
        db = self.session_factory()
        try:
            await self._process(db, revision_id)
        except Exception:
            logger.exception(f"Revision {revision_id} processing crashed")
        finally:
            db.close()

    async def _process(self, db: Session, revision_id: int) -> None:
        started = time.monotonic()
        trace_id = uuid.uuid4().hex

        if not revision_service.claim_revision(db, revision_id, trace_id=trace_id):
            revision = revision_service.get_revision(db, revision_id)
            if revision.status == RevisionStatus.PENDING:
                logger.warning(f"Revision {revision_id} not started: another revision is in progress")
                revision_service.update_revision(
                    db,
                    revision,
                    status=RevisionStatus.FAILED,
                    error_message="Another revision of this submission is already in progress",
                )
            return

        revision = revision_service.get_revision(db, revision_id)
        submission = submission_service.get_submission(db, revision.submission_id)
        logger.info(f"Revision {revision_id} started for submission {submission.id}, trace={trace_id}")

        try:
            outcome = await self.pipeline.score_and_highlight(
                db,
                submission,
                trace_id=trace_id,
                request_context={"revision_id": revision_id},
            )
        except Exception as e:
            message = describe_error(e)
            db.rollback()
            revision_service.update_revision(
                db,
                revision,
                status=RevisionStatus.FAILED,
                error_message=message,
                latency_ms=int((time.monotonic() - started) * 1000),
            )
            logger.error(f"Revision {revision_id} failed: {message}")
            await best_effort(
                self.notifier.notify_failure,
                submission.id,
                submission.student_id,
                message,
                trace_id,
                description=f"failure notification for revision {revision_id}",
            )
            return

        revision_service.update_revision(
            db,
            revision,
            status=RevisionStatus.COMPLETED,
            error_message=None,
            latency_ms=int((time.monotonic() - started) * 1000),
            **outcome.as_fields(),
        )
        submission_service.update_submission(
            db,
            submission,
            status=SubmissionStatus.COMPLETED,
            error_message=None,
            **outcome.as_fields(),
        )
        await self.cache.invalidate_submission(submission.id, submission.student_id)
        logger.info(f"Revision {revision_id} completed, score={outcome.score}")

    # ---- reads ----

    def list_revisions(
        self,
        db: Session,
        *,
        page: int = 1,
        size: int = 20,
        sort: Optional[str] = revision_service.DEFAULT_SORT,
        student_id: Optional[int] = None,
    ) -> RevisionPage:
        items, total, total_pages = revision_service.list_revisions(
            db, page=page, size=size, sort=sort, student_id=student_id
        )
        return RevisionPage(
            items=[RevisionPublic.model_validate(r) for r in items],
            total=total,
            total_pages=total_pages,
            page=page,
            size=size,
        )

    def get_revision(self, db: Session, revision_id: int, *, student_id: Optional[int] = None) -> RevisionPublic:
        return RevisionPublic.model_validate(
            revision_service.get_revision(db, revision_id, student_id=student_id)
        )
