# app/services/container.py
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from app.core.config import Settings
from app.db.session import SessionLocal
from app.services.ai_evaluator import AIEvaluator
from app.services.blob_store import BlobStore
from app.services.cache_service import CacheService
from app.services.evaluation_log_service import EvaluationLogRecorder
from app.services.evaluation_pipeline import EvaluationPipeline
from app.services.media_processor import MediaProcessor
from app.services.notification_service import NotificationService
from app.services.processing_guard import ProcessingGuard
from app.services.revision_orchestrator import RevisionOrchestrator
from app.services.submission_orchestrator import SubmissionOrchestrator
from app.workers.retry_sweeper import RetrySweeper
from app.workers.scheduler import RetryScheduler


@dataclass
class Services:
    cache: CacheService
    submissions: SubmissionOrchestrator
    revisions: RevisionOrchestrator
    sweeper: RetrySweeper
    scheduler: RetryScheduler


def build_services(
    settings: Settings,
    *,
    session_factory: Callable[[], Session] = SessionLocal,
    cache: Optional[CacheService] = None,
    evaluator: Optional[Any] = None,
    media: Optional[Any] = None,
    blobs: Optional[Any] = None,
    notifier: Optional[Any] = None,
    background_revisions: bool = True,
) -> Services:
    """Wire the application services; any collaborator can be replaced (tests pass fakes)."""
    cache = cache or CacheService()
    recorder = EvaluationLogRecorder(settings.LOG_PAYLOAD_MAX_CHARS)
    evaluator = evaluator or AIEvaluator(settings, cache)
    notifier = notifier or NotificationService(settings)
    pipeline = EvaluationPipeline(evaluator, recorder)

    submissions = SubmissionOrchestrator(
        settings,
        pipeline,
        recorder,
        media or MediaProcessor(settings),
        blobs or BlobStore(settings, cache),
        notifier,
        cache,
        ProcessingGuard(),
    )
    revisions = RevisionOrchestrator(
        session_factory, pipeline, notifier, cache, background=background_revisions
    )
    sweeper = RetrySweeper(settings, session_factory, pipeline, notifier, cache)

    return Services(
        cache=cache,
        submissions=submissions,
        revisions=revisions,
        sweeper=sweeper,
        scheduler=RetryScheduler(sweeper, settings.RETRY_INTERVAL_SECONDS),
    )
