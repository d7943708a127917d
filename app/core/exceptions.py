# app/core/exceptions.py
"""
Domain errors raised by the services and rendered by the exception handler in app.main.

Conflict / NotFound / InvalidRequest are detected synchronously and surface to the
caller as-is. StageError subclasses describe a failed pipeline stage; the orchestrators
catch them, persist FAILED and (for the synchronous submit call) re-raise them wrapped
in EvaluationFailedError.
"""
import enum
from typing import Any


class EssayServiceError(Exception):
    status_code: int = 500

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"detail": self.message, **self.extra}


class InvalidRequestError(EssayServiceError):
    status_code = 400


class NotFoundError(EssayServiceError):
    status_code = 404


class ConflictError(EssayServiceError):
    status_code = 409


class StageError(EssayServiceError):
    """A pipeline stage (media, blob upload, AI call, highlighting) failed."""
    status_code = 502


class MediaProcessingError(StageError):
    pass


class BlobUploadError(StageError):
    pass


class AIErrorKind(str, enum.Enum):
    TIMEOUT = "timeout"
    NETWORK = "network"
    AUTH = "auth"
    UPSTREAM = "upstream"
    MALFORMED_RESPONSE = "malformed_response"


class AIEvaluationError(StageError):
    def __init__(self, kind: AIErrorKind, message: str):
        super().__init__(f"AI evaluation failed ({kind.value}): {message}", kind=kind.value)
        self.kind = kind


class EvaluationFailedError(EssayServiceError):
    """Raised by submit after the submission row has been marked FAILED."""
    status_code = 502

    def __init__(self, submission_id: int, message: str):
        super().__init__(message, submission_id=submission_id)
        self.submission_id = submission_id


def describe_error(error: BaseException) -> str:
    """Message to persist for a failed stage: the domain message, else str(), else the class name."""
    return getattr(error, "message", None) or str(error) or error.__class__.__name__
