# app/services/notification_service.py
import logging
from typing import Optional

import httpx

from app.core.config import Settings

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Failure alerts for operators.

    Always writes a structured error log line; additionally posts to Slack when
    SLACK_WEBHOOK_URL is set. Callers go through best_effort(), so errors raised
    here never affect the pipeline outcome.
    """

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._http_client = http_client

    async def notify_failure(
        self,
        submission_id: int,
        student_id: int,
        error_message: str,
        trace_id: Optional[str] = None,
    ) -> None:
        logger.error(
            f"Evaluation failed: submission={submission_id} student={student_id} "
            f"trace={trace_id or '-'} error={error_message}"
        )

        if not self.settings.SLACK_WEBHOOK_URL:
            return

        payload = {
            "text": (
                f":warning: Evaluation failed for submission {submission_id} "
                f"(student {student_id})\n"
                f"Error: {error_message}\n"
                f"Trace: {trace_id or '-'}"
            )
        }
        await self._post(payload)

    async def _post(self, payload: dict) -> None:
        if self._http_client is not None:
            response = await self._http_client.post(
                self.settings.SLACK_WEBHOOK_URL,
                json=payload,
                timeout=self.settings.NOTIFICATION_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            return

        async with httpx.AsyncClient(timeout=self.settings.NOTIFICATION_TIMEOUT_SECONDS) as client:
            response = await client.post(self.settings.SLACK_WEBHOOK_URL, json=payload)
            response.raise_for_status()
