# app/core/side_calls.py
import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


async def best_effort(call: Callable[..., Any], *args: Any, description: str, **kwargs: Any) -> bool:
    """
    Run a side call whose failure must never reach the caller.

    Works for plain functions and coroutine functions. Any exception is logged with its
    traceback and swallowed; the return value tells whether the call went through.
    """
    try:
        result = call(*args, **kwargs)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception(f"Best-effort call failed: {description}")
        return False
    return True
