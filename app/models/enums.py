# app/models/enums.py
import enum


class SubmissionCategory(str, enum.Enum):
    """Kind of task a submission answers. One submission per student per category."""
    WRITING = "WRITING"
    SPEAKING = "SPEAKING"
    READING = "READING"
    LISTENING = "LISTENING"


class SubmissionStatus(str, enum.Enum):
    # PENDING -> PROCESSING -> COMPLETED / FAILED
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class RevisionStatus(str, enum.Enum):
    # PENDING -> IN_PROGRESS -> COMPLETED / FAILED
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class LogStage(str, enum.Enum):
    VIDEO_PROCESSING = "VIDEO_PROCESSING"
    BLOB_UPLOAD = "BLOB_UPLOAD"
    AI_EVALUATION = "AI_EVALUATION"
    TEXT_HIGHLIGHTING = "TEXT_HIGHLIGHTING"


class LogStatus(str, enum.Enum):
    STARTED = "STARTED"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
