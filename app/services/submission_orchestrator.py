# app/services/submission_orchestrator.py
"""
Submission Orchestrator
Runs the synchronous submit pipeline and serves the cached read paths
"""

import asyncio
import logging
import time
import uuid
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.exceptions import BlobUploadError, EvaluationFailedError, describe_error
from app.core.side_calls import best_effort
from app.models.enums import LogStage, SubmissionStatus
from app.models.evaluation_log import EvaluationLog
from app.models.student import Student
from app.models.submission import Submission
from app.schemas.submission import (
    SubmissionCreate,
    SubmissionPage,
    SubmissionPublic,
    SubmitResult,
    VideoUpload,
)
from app.services import revision_service, submission_service
from app.services.blob_store import BlobStore, UploadedBlob
from app.services.cache_service import CacheService
from app.services.evaluation_log_service import EvaluationLogRecorder, list_logs
from app.services.evaluation_pipeline import EvaluationPipeline
from app.services.media_processor import MediaProcessor, ProcessedMedia
from app.services.notification_service import NotificationService
from app.services.processing_guard import ProcessingGuard

logger = logging.getLogger(__name__)

AUTO_REVISION_REASON = "Automatic re-evaluation requested after failed AI evaluation: {message}"


class SubmissionOrchestrator:
    def __init__(
        self,
        settings: Settings,
        pipeline: EvaluationPipeline,
        recorder: EvaluationLogRecorder,
        media: MediaProcessor,
        blobs: BlobStore,
        notifier: NotificationService,
        cache: CacheService,
        guard: Optional[ProcessingGuard] = None,
    ):
        self.settings = settings
        self.pipeline = pipeline
        self.recorder = recorder
        self.media = media
        self.blobs = blobs
        self.notifier = notifier
        self.cache = cache
        self.guard = guard or ProcessingGuard()

    # ---- submit ----

    async def submit(
        self,
        db: Session,
        *,
        student_id: int,
        obj_in: SubmissionCreate,
        video: Optional[VideoUpload] = None,
    ) -> SubmitResult:
        """
        Create a submission and evaluate it before returning.

        Raises:
            ConflictError: the same (student, category) is in flight, or already exists
            EvaluationFailedError: a stage failed; the submission is already FAILED
        """
        started = time.monotonic()
        trace_id = uuid.uuid4().hex

        # the guard is taken before touching storage and released on every path
        with self.guard.hold((student_id, obj_in.category)):
            submission = submission_service.create_submission(db, student_id=student_id, obj_in=obj_in)
            submission_id = submission.id
            logger.info(
                f"Submission {submission_id} created for student {student_id} "
                f"({obj_in.category.value}), trace={trace_id}"
            )

            try:
                submission = await self._evaluate(db, submission, video, trace_id)
            except Exception as e:
                message = describe_error(e)
                logger.error(f"Submission {submission_id} failed: {message}")
                await self._record_failure(db, submission_id, student_id, message, trace_id)
                raise EvaluationFailedError(submission_id, message) from e

        await self.cache.invalidate_submission(submission_id, student_id)
        latency_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Submission {submission_id} completed in {latency_ms}ms, score={submission.score}")

        return SubmitResult(
            submission_id=submission.id,
            student_id=submission.student_id,
            status=submission.status,
            message="Evaluation completed",
            score=submission.score,
            feedback=submission.feedback,
            highlights=submission.highlights,
            submit_text=submission.submit_text,
            highlighted_text=submission.highlighted_text,
            video_url=submission.video_url,
            audio_url=submission.audio_url,
            latency_ms=latency_ms,
        )

    async def _evaluate(
        self,
        db: Session,
        submission: Submission,
        video: Optional[VideoUpload],
        trace_id: str,
    ) -> Submission:
        submission = submission_service.update_submission(
            db, submission, status=SubmissionStatus.PROCESSING
        )

        media_fields = {}
        if video is not None:
            video_blob, audio_blob = await self._process_media(db, submission.id, video, trace_id)
            media_fields = {"video_url": video_blob.signed_url, "audio_url": audio_blob.signed_url}

        outcome = await self.pipeline.score_and_highlight(db, submission, trace_id=trace_id)

        return submission_service.update_submission(
            db,
            submission,
            status=SubmissionStatus.COMPLETED,
            error_message=None,
            **media_fields,
            **outcome.as_fields(),
        )

    async def _process_media(
        self,
        db: Session,
        submission_id: int,
        video: VideoUpload,
        trace_id: str,
    ) -> Tuple[UploadedBlob, UploadedBlob]:
        media: ProcessedMedia = await self.recorder.run_stage(
            db,
            submission_id,
            LogStage.VIDEO_PROCESSING,
            lambda: self.media.process(video.content, video.filename),
            trace_id=trace_id,
            request_data={
                "filename": video.filename,
                "content_type": video.content_type,
                "size": video.size,
            },
            describe=lambda m: {"video_path": m.video_path, "audio_path": m.audio_path},
        )

        try:
            return await self.recorder.run_stage(
                db,
                submission_id,
                LogStage.BLOB_UPLOAD,
                lambda: self._upload_pair(media),
                trace_id=trace_id,
                request_data={"video_path": media.video_path, "audio_path": media.audio_path},
                describe=lambda blobs: {
                    "video_blob": blobs[0].blob_name,
                    "audio_blob": blobs[1].blob_name,
                },
            )
        finally:
            self.media.cleanup(media.paths)

    async def _upload_pair(self, media: ProcessedMedia) -> Tuple[UploadedBlob, UploadedBlob]:
        # wait for both uploads before the temp files can be removed
        results = await asyncio.gather(
            self.blobs.upload_video(media.video_path),
            self.blobs.upload_audio(media.audio_path),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                if isinstance(result, BlobUploadError):
                    raise result
                raise BlobUploadError(f"upload failed: {result}") from result
        return results[0], results[1]

    async def _record_failure(
        self,
        db: Session,
        submission_id: int,
        student_id: int,
        message: str,
        trace_id: str,
    ) -> None:
        db.rollback()
        submission = submission_service.get_submission(db, submission_id)
        submission_service.update_submission(
            db, submission, status=SubmissionStatus.FAILED, error_message=message
        )

        await best_effort(
            self.notifier.notify_failure,
            submission_id,
            student_id,
            message,
            trace_id,
            description=f"failure notification for submission {submission_id}",
        )

        # marker row only; the retry sweeper works from the submission status
        try:
            revision_service.create_revision_record(
                db, submission, reason=AUTO_REVISION_REASON.format(message=message)
            )
        except Exception:
            logger.exception(f"Could not record automatic revision for submission {submission_id}")
            db.rollback()
        finally:
            await self.cache.invalidate_submission(submission_id, student_id)

    # ---- reads ----

    async def get_submission(self, db: Session, submission_id: int, student_id: int) -> SubmissionPublic:
        cache_key = self.cache.submission_key(submission_id)
        cached = await self.cache.get(cache_key)
        if cached is not None and cached.get("student_id") == student_id:
            return SubmissionPublic.model_validate(cached)

        submission = submission_service.get_submission_for_student(db, submission_id, student_id)
        result = SubmissionPublic.model_validate(submission)
        await self.cache.set(
            cache_key, result.model_dump(mode="json"), self.settings.SUBMISSION_CACHE_TTL_SECONDS
        )
        return result

    async def get_student_submissions(self, db: Session, student_id: int) -> List[SubmissionPublic]:
        cache_key = self.cache.student_submissions_key(student_id)
        cached = await self.cache.get(cache_key)
        if isinstance(cached, list):
            return [SubmissionPublic.model_validate(item) for item in cached]

        items = [
            SubmissionPublic.model_validate(s)
            for s in submission_service.list_submissions_for_student(db, student_id)
        ]
        await self.cache.set(
            cache_key,
            [item.model_dump(mode="json") for item in items],
            self.settings.STUDENT_SUBMISSIONS_CACHE_TTL_SECONDS,
        )
        return items

    def list_all_submissions(
        self,
        db: Session,
        *,
        page: int = 1,
        size: int = 20,
        sort: Optional[str] = submission_service.DEFAULT_SORT,
        status: Optional[SubmissionStatus] = None,
        student_id: Optional[int] = None,
        student_name: Optional[str] = None,
        title: Optional[str] = None,
    ) -> SubmissionPage:
        items, total, total_pages = submission_service.list_submissions(
            db,
            page=page,
            size=size,
            sort=sort,
            status=status,
            student_id=student_id,
            student_name=student_name,
            title=title,
        )
        return SubmissionPage(
            items=[SubmissionPublic.model_validate(s) for s in items],
            total=total,
            total_pages=total_pages,
            page=page,
            size=size,
        )

    def list_logs(self, db: Session, submission_id: int, student_id: int) -> List[EvaluationLog]:
        submission_service.get_submission_for_student(db, submission_id, student_id)
        return list_logs(db, submission_id)

    # ---- deletes ----

    async def delete_submission(self, db: Session, submission_id: int, student_id: int) -> None:
        submission = submission_service.get_submission_for_student(db, submission_id, student_id)
        submission_service.delete_submission(db, submission)
        await self.cache.invalidate_submission(submission_id, student_id)
        logger.info(f"Submission {submission_id} deleted with its logs and revisions")

    async def delete_student(self, db: Session, student: Student) -> None:
        student_id = student.id
        removed = submission_service.delete_student(db, student)
        for submission_id in removed:
            await self.cache.delete(self.cache.submission_key(submission_id))
        await self.cache.delete(self.cache.student_submissions_key(student_id))
        logger.info(f"Student {student_id} deleted with {len(removed)} submissions")
