# app/services/evaluation_log_service.py
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional, TypeVar, Union

from sqlalchemy.orm import Session

from app.models.enums import LogStage, LogStatus
from app.models.evaluation_log import EvaluationLog

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRUNCATED_SUFFIX = "...[truncated]"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class EvaluationLogRecorder:
    """
    Writes the STARTED / SUCCESS / FAILED audit trail of pipeline stages.

    Each record is committed on its own so the trail survives a later failure
    of the surrounding pipeline.
    """

    def __init__(self, payload_max_chars: int = 2000):
        self.payload_max_chars = payload_max_chars

    def snapshot(self, payload: Any) -> Any:
        """Copy a payload for storage, truncating long strings."""
        if payload is None:
            return None
        if isinstance(payload, str):
            if len(payload) > self.payload_max_chars:
                return payload[: self.payload_max_chars] + TRUNCATED_SUFFIX
            return payload
        if isinstance(payload, dict):
            return {str(k): self.snapshot(v) for k, v in payload.items()}
        if isinstance(payload, (list, tuple)):
            return [self.snapshot(v) for v in payload]
        if isinstance(payload, (int, float, bool)):
            return payload
        return self.snapshot(str(payload))

    def record(
        self,
        db: Session,
        submission_id: int,
        stage: LogStage,
        status: LogStatus,
        *,
        latency_ms: Optional[int] = None,
        request_data: Any = None,
        response_data: Any = None,
        error_message: Optional[str] = None,
        trace_id: Optional[str] = None,
    ) -> EvaluationLog:
        entry = EvaluationLog(
            submission_id=submission_id,
            stage=stage,
            status=status,
            latency_ms=latency_ms,
            request_data=self.snapshot(request_data),
            response_data=self.snapshot(response_data),
            error_message=error_message,
            trace_id=trace_id,
        )
        db.add(entry)
        db.commit()
        return entry

    async def run_stage(
        self,
        db: Session,
        submission_id: int,
        stage: LogStage,
        action: Callable[[], Union[T, Awaitable[T]]],
        *,
        trace_id: Optional[str] = None,
        request_data: Any = None,
        describe: Optional[Callable[[T], Any]] = None,
    ) -> T:
        """
        Run one pipeline stage between a STARTED and a SUCCESS/FAILED record.

        Args:
            action: zero-argument callable, sync or async
            describe: turns the stage result into the response snapshot

        Returns:
            whatever the action returned

        Raises:
            the action's exception, after the FAILED record is committed
        """
        self.record(
            db, submission_id, stage, LogStatus.STARTED,
            request_data=request_data, trace_id=trace_id,
        )
        started = time.monotonic()
        try:
            result = action()
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            latency = _elapsed_ms(started)
            logger.warning(f"Stage {stage.value} failed for submission {submission_id}: {e}")
            # the failed action may have left the session dirty
            db.rollback()
            self.record(
                db, submission_id, stage, LogStatus.FAILED,
                latency_ms=latency, request_data=request_data,
                error_message=str(e), trace_id=trace_id,
            )
            raise

        self.record(
            db, submission_id, stage, LogStatus.SUCCESS,
            latency_ms=_elapsed_ms(started),
            request_data=request_data,
            response_data=describe(result) if describe else None,
            trace_id=trace_id,
        )
        return result


def list_logs(db: Session, submission_id: int) -> List[EvaluationLog]:
    return (
        db.query(EvaluationLog)
        .filter(EvaluationLog.submission_id == submission_id)
        .order_by(EvaluationLog.created_at.asc(), EvaluationLog.id.asc())
        .all()
    )
