# app/services/evaluation_pipeline.py
from dataclasses import dataclass
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from app.models.enums import LogStage
from app.models.submission import Submission
from app.services.ai_evaluator import AIEvaluator
from app.services.evaluation_log_service import EvaluationLogRecorder
from app.services.text_highlighter import highlight_stats, highlight_text


@dataclass
class EvaluationOutcome:
    score: int
    feedback: str
    highlights: List[str]
    highlighted_text: str

    def as_fields(self) -> dict:
        return {
            "score": self.score,
            "feedback": self.feedback,
            "highlights": self.highlights,
            "highlighted_text": self.highlighted_text,
        }


class EvaluationPipeline:
    """
    AI evaluation followed by highlighting, each logged as its own stage.

    Shared by the first submit, by revisions and by the retry sweeper; all of them
    evaluate the submission's stored title / text / category.
    """

    def __init__(self, evaluator: AIEvaluator, recorder: EvaluationLogRecorder):
        self.evaluator = evaluator
        self.recorder = recorder

    async def score_and_highlight(
        self,
        db: Session,
        submission: Submission,
        *,
        trace_id: Optional[str] = None,
        request_context: Optional[dict[str, Any]] = None,
    ) -> EvaluationOutcome:
        submission_id = submission.id
        title = submission.title
        submit_text = submission.submit_text
        category = submission.category
        context = request_context or {}

        result = await self.recorder.run_stage(
            db,
            submission_id,
            LogStage.AI_EVALUATION,
            lambda: self.evaluator.evaluate(title, submit_text, category),
            trace_id=trace_id,
            request_data={
                "title": title,
                "category": category.value,
                "submit_text": submit_text,
                **context,
            },
            describe=lambda r: r.model_dump(),
        )

        highlighted = await self.recorder.run_stage(
            db,
            submission_id,
            LogStage.TEXT_HIGHLIGHTING,
            lambda: highlight_text(submit_text, result.highlights),
            trace_id=trace_id,
            request_data={"highlights": result.highlights, **context},
            describe=lambda text: {
                "highlighted_text": text,
                "highlight_count": highlight_stats(text)[0],
            },
        )

        return EvaluationOutcome(
            score=result.score,
            feedback=result.feedback,
            highlights=result.highlights,
            highlighted_text=highlighted,
        )
