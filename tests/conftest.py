import asyncio
import os
from pathlib import Path

# must be set before app modules create the engine / settings
TEST_DB_FILE = "test_essays.db"
os.environ["DATABASE_URL"] = f"sqlite:///./{TEST_DB_FILE}"
os.environ["RETRY_SWEEPER_ENABLED"] = "false"
os.environ["SLACK_WEBHOOK_URL"] = ""

import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.exceptions import AIErrorKind, AIEvaluationError, BlobUploadError
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.main import app
from app.models.enums import SubmissionCategory
from app.models.student import Student
from app.schemas.evaluation import AIEvaluationResult
from app.schemas.submission import SubmissionCreate
from app.services.blob_store import UploadedBlob
from app.services.cache_service import CacheService
from app.services.container import build_services
from app.services.media_processor import MediaProcessor, ProcessedMedia

SAMPLE_TEXT = "I like school. School is fun and I learn a lot every day."
SAMPLE_HIGHLIGHTS = ["I like school.", "learn a lot"]
SAMPLE_HIGHLIGHTED = "<b>I like school.</b> School is fun and I <b>learn a lot</b> every day."


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis (get / set / delete only)."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed


class FakeEvaluator:
    def __init__(self, score=8, feedback="Good work.", highlights=None):
        self.score = score
        self.feedback = feedback
        self.highlights = SAMPLE_HIGHLIGHTS if highlights is None else highlights
        self.error = None
        self.fail_texts = set()
        self.calls = []
        self.on_call = None

    async def evaluate(self, title, submit_text, category):
        self.calls.append((title, submit_text, category))
        if self.on_call is not None:
            self.on_call()
        await asyncio.sleep(0.01)
        if self.error is not None:
            raise self.error
        if submit_text in self.fail_texts:
            raise AIEvaluationError(AIErrorKind.UPSTREAM, "model unavailable")
        return AIEvaluationResult(score=self.score, feedback=self.feedback, highlights=self.highlights)


class FakeMediaProcessor(MediaProcessor):
    """Writes placeholder output files instead of running ffmpeg; cleanup is the real one."""

    def __init__(self, tmp_dir: Path):
        super().__init__(settings)
        self.temp_dir = tmp_dir
        self.error = None
        self.produced = []

    async def process(self, content, filename=None):
        if self.error is not None:
            raise self.error
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        video = self.temp_dir / f"{len(self.produced)}-video.mp4"
        audio = self.temp_dir / f"{len(self.produced)}-audio.mp3"
        video.write_bytes(content)
        audio.write_bytes(b"mp3")
        media = ProcessedMedia(video_path=str(video), audio_path=str(audio))
        self.produced.append(media)
        return media


class FakeBlobStore:
    def __init__(self):
        self.uploads = []
        self.fail = False

    async def _upload(self, local_path, kind):
        await asyncio.sleep(0)
        if self.fail:
            raise BlobUploadError(f"upload of {kind} failed: bucket unavailable")
        self.uploads.append(local_path)
        name = f"{kind}-{len(self.uploads)}"
        return UploadedBlob(
            blob_name=name,
            url=f"https://bucket.example/{name}",
            signed_url=f"https://bucket.example/{name}?sig=abc",
        )

    async def upload_video(self, local_path):
        return await self._upload(local_path, "video")

    async def upload_audio(self, local_path):
        return await self._upload(local_path, "audio")


class RecordingNotifier:
    def __init__(self):
        self.calls = []
        self.fail = False

    async def notify_failure(self, submission_id, student_id, error_message, trace_id=None):
        self.calls.append((submission_id, student_id, error_message))
        if self.fail:
            raise RuntimeError("slack is down")


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="session", autouse=True)
def remove_test_db():
    yield
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def cache():
    return CacheService(redis=FakeRedis())


@pytest.fixture()
def evaluator():
    return FakeEvaluator()


@pytest.fixture()
def media(tmp_path):
    return FakeMediaProcessor(tmp_path / "media")


@pytest.fixture()
def blobs():
    return FakeBlobStore()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def services(cache, evaluator, media, blobs, notifier):
    return build_services(
        settings,
        session_factory=SessionLocal,
        cache=cache,
        evaluator=evaluator,
        media=media,
        blobs=blobs,
        notifier=notifier,
        background_revisions=False,
    )


@pytest.fixture()
def client(services):
    app.state.services = services
    with TestClient(app) as c:
        yield c
    app.state.services = None


def make_student(db, name="Student One", email=None) -> Student:
    student = Student(name=name, email=email or f"{name.lower().replace(' ', '.')}@example.com")
    db.add(student)
    db.commit()
    db.refresh(student)
    return student


def make_submission_in(category=SubmissionCategory.WRITING, text=SAMPLE_TEXT, title="My school") -> SubmissionCreate:
    return SubmissionCreate(title=title, submit_text=text, category=category)
