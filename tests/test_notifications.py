import asyncio
import json

import httpx
import pytest

from app.core.config import settings
from app.core.side_calls import best_effort
from app.services.notification_service import NotificationService


def _notifier(handler):
    slack_settings = settings.model_copy(update={"SLACK_WEBHOOK_URL": "https://hooks.slack.test/T000/B000"})
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NotificationService(slack_settings, http_client=client)


def test_failure_is_posted_to_slack():
    received = []

    def handler(request):
        received.append(json.loads(request.content))
        return httpx.Response(200, text="ok")

    asyncio.run(_notifier(handler).notify_failure(12, 3, "AI evaluation failed (timeout)", "trace-1"))

    assert len(received) == 1
    assert "submission 12" in received[0]["text"]
    assert "trace-1" in received[0]["text"]


def test_without_webhook_only_logs(caplog):
    notifier = NotificationService(settings.model_copy(update={"SLACK_WEBHOOK_URL": None}))
    with caplog.at_level("ERROR"):
        asyncio.run(notifier.notify_failure(5, 1, "boom"))
    assert "submission=5" in caplog.text


def test_webhook_error_raises_but_best_effort_swallows():
    notifier = _notifier(lambda request: httpx.Response(500))

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(notifier.notify_failure(1, 1, "boom"))

    ok = asyncio.run(best_effort(notifier.notify_failure, 1, 1, "boom", description="test notify"))
    assert ok is False


def test_best_effort_with_plain_function():
    calls = []
    assert asyncio.run(best_effort(calls.append, 1, description="append")) is True
    assert calls == [1]
