# app/workers/retry_sweeper.py
"""
Retry Sweeper
Re-evaluates submissions that have been sitting in FAILED for too long
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List

from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.exceptions import describe_error
from app.core.side_calls import best_effort
from app.models.enums import RevisionStatus, SubmissionStatus
from app.models.submission import Submission
from app.services import revision_service, submission_service
from app.services.cache_service import CacheService
from app.services.evaluation_pipeline import EvaluationPipeline
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

AUTO_RETRY_REASON = "automatic retry"


@dataclass
class SweepReport:
    found: int = 0
    succeeded: int = 0
    failed: int = 0
    submission_ids: List[int] = field(default_factory=list)


class RetrySweeper:
    def __init__(
        self,
        settings: Settings,
        session_factory: Callable[[], Session],
        pipeline: EvaluationPipeline,
        notifier: NotificationService,
        cache: CacheService,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.pipeline = pipeline
        self.notifier = notifier
        self.cache = cache

    async def run(self) -> SweepReport:
        """
        One sweep over at most RETRY_BATCH_SIZE stale FAILED submissions.

        Items are isolated: an error on one submission is recorded against it and
        the sweep moves on.
        """
        report = SweepReport()
        db = self.session_factory()
        try:
            cutoff = datetime.now(timezone.utc) - timedelta(seconds=self.settings.RETRY_STALE_AFTER_SECONDS)
            candidates = submission_service.list_retry_candidates(
                db, older_than=cutoff, limit=self.settings.RETRY_BATCH_SIZE
            )
            report.found = len(candidates)
            if not candidates:
                logger.info("Retry sweep: no failed submissions to retry")
                return report

            logger.info(f"Retry sweep: retrying {len(candidates)} failed submissions")
            for submission in candidates:
                report.submission_ids.append(submission.id)
                try:
                    ok = await self._retry(db, submission)
                except Exception:
                    logger.exception(f"Retry sweep: submission {submission.id} could not be processed")
                    db.rollback()
                    ok = False
                if ok:
                    report.succeeded += 1
                else:
                    report.failed += 1
        finally:
            db.close()

        logger.info(
            f"Retry sweep finished: found={report.found} succeeded={report.succeeded} failed={report.failed}"
        )
        return report

    async def _retry(self, db: Session, submission: Submission) -> bool:
        started = time.monotonic()
        trace_id = uuid.uuid4().hex
        submission_id = submission.id
        student_id = submission.student_id

        submission = submission_service.update_submission(
            db, submission, status=SubmissionStatus.PROCESSING
        )
        try:
            outcome = await self.pipeline.score_and_highlight(
                db, submission, trace_id=trace_id, request_context={"retry": True}
            )
        except Exception as e:
            message = describe_error(e)
            db.rollback()
            submission_service.update_submission(
                db, submission, status=SubmissionStatus.FAILED, error_message=message
            )
            revision_service.create_revision_record(
                db,
                submission,
                reason=AUTO_RETRY_REASON,
                status=RevisionStatus.FAILED,
                error_message=message,
                latency_ms=int((time.monotonic() - started) * 1000),
                trace_id=trace_id,
            )
            await self.cache.invalidate_submission(submission_id, student_id)
            await best_effort(
                self.notifier.notify_failure,
                submission_id,
                student_id,
                message,
                trace_id,
                description=f"retry failure notification for submission {submission_id}",
            )
            logger.warning(f"Retry sweep: submission {submission_id} failed again: {message}")
            return False

        submission_service.update_submission(
            db,
            submission,
            status=SubmissionStatus.COMPLETED,
            error_message=None,
            **outcome.as_fields(),
        )
        revision_service.create_revision_record(
            db,
            submission,
            reason=AUTO_RETRY_REASON,
            status=RevisionStatus.COMPLETED,
            latency_ms=int((time.monotonic() - started) * 1000),
            trace_id=trace_id,
            **outcome.as_fields(),
        )
        await self.cache.invalidate_submission(submission_id, student_id)
        logger.info(f"Retry sweep: submission {submission_id} completed, score={outcome.score}")
        return True
