import asyncio
from pathlib import Path

import pytest

from app.core.exceptions import (
    AIErrorKind,
    AIEvaluationError,
    ConflictError,
    EvaluationFailedError,
    InvalidRequestError,
    MediaProcessingError,
    NotFoundError,
)
from app.db.session import SessionLocal
from app.models.enums import LogStage, LogStatus, RevisionStatus, SubmissionCategory, SubmissionStatus
from app.models.evaluation_log import EvaluationLog
from app.models.revision import Revision
from app.models.submission import Submission
from app.schemas.submission import VideoUpload
from app.services import revision_service
from app.services.evaluation_log_service import list_logs

from tests.conftest import SAMPLE_HIGHLIGHTED, make_student, make_submission_in


def _statuses(db, submission_id, stage):
    return [log.status for log in list_logs(db, submission_id) if log.stage == stage]


def test_submit_happy_path(db, services, evaluator):
    student = make_student(db)

    result = asyncio.run(
        services.submissions.submit(db, student_id=student.id, obj_in=make_submission_in())
    )

    assert result.status == SubmissionStatus.COMPLETED
    assert result.score == 8
    assert result.highlighted_text == SAMPLE_HIGHLIGHTED
    assert result.latency_ms >= 0
    assert len(evaluator.calls) == 1

    stored = db.get(Submission, result.submission_id)
    assert stored.status == SubmissionStatus.COMPLETED
    assert stored.error_message is None
    assert stored.highlights == ["I like school.", "learn a lot"]

    assert _statuses(db, stored.id, LogStage.AI_EVALUATION) == [LogStatus.STARTED, LogStatus.SUCCESS]
    assert _statuses(db, stored.id, LogStage.TEXT_HIGHLIGHTING) == [LogStatus.STARTED, LogStatus.SUCCESS]
    # no video, no media stages
    assert _statuses(db, stored.id, LogStage.VIDEO_PROCESSING) == []


def test_duplicate_category_conflicts_without_new_row(db, services):
    student = make_student(db)
    asyncio.run(services.submissions.submit(db, student_id=student.id, obj_in=make_submission_in()))

    with pytest.raises(ConflictError):
        asyncio.run(services.submissions.submit(db, student_id=student.id, obj_in=make_submission_in()))

    assert db.query(Submission).count() == 1
    # a different category is fine
    asyncio.run(
        services.submissions.submit(
            db, student_id=student.id, obj_in=make_submission_in(category=SubmissionCategory.SPEAKING)
        )
    )
    assert db.query(Submission).count() == 2


def test_concurrent_submits_one_wins(db, services, evaluator):
    student = make_student(db)
    key = (student.id, SubmissionCategory.WRITING)
    seen_active = []
    evaluator.on_call = lambda: seen_active.append(services.submissions.guard.is_active(key))

    async def both():
        db1, db2 = SessionLocal(), SessionLocal()
        try:
            return await asyncio.gather(
                services.submissions.submit(db1, student_id=student.id, obj_in=make_submission_in()),
                services.submissions.submit(db2, student_id=student.id, obj_in=make_submission_in()),
                return_exceptions=True,
            )
        finally:
            db1.close()
            db2.close()

    results = asyncio.run(both())

    successes = [r for r in results if not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(successes) == 1
    assert len(conflicts) == 1
    assert seen_active == [True]
    assert len(evaluator.calls) == 1
    assert db.query(Submission).count() == 1
    assert len(services.submissions.guard) == 0


def test_ai_failure_marks_failed_notifies_and_creates_revision(db, services, evaluator, notifier, cache):
    student = make_student(db)
    evaluator.error = AIEvaluationError(AIErrorKind.MALFORMED_RESPONSE, "no JSON object in response")

    with pytest.raises(EvaluationFailedError) as exc:
        asyncio.run(services.submissions.submit(db, student_id=student.id, obj_in=make_submission_in()))

    submission_id = exc.value.submission_id
    db.expire_all()
    stored = db.get(Submission, submission_id)
    assert stored.status == SubmissionStatus.FAILED
    assert "no JSON object" in stored.error_message
    assert stored.score is None

    assert _statuses(db, submission_id, LogStage.AI_EVALUATION) == [LogStatus.STARTED, LogStatus.FAILED]
    assert _statuses(db, submission_id, LogStage.TEXT_HIGHLIGHTING) == []

    assert notifier.calls == [(submission_id, student.id, stored.error_message)]

    revisions = db.query(Revision).filter(Revision.submission_id == submission_id).all()
    assert len(revisions) == 1
    assert revisions[0].status == RevisionStatus.PENDING
    assert stored.error_message in revisions[0].reason

    # guard released even on failure
    assert len(services.submissions.guard) == 0


def test_failing_notifier_does_not_mask_error(db, services, evaluator, notifier):
    student = make_student(db)
    evaluator.error = AIEvaluationError(AIErrorKind.TIMEOUT, "no response within 60s")
    notifier.fail = True

    with pytest.raises(EvaluationFailedError) as exc:
        asyncio.run(services.submissions.submit(db, student_id=student.id, obj_in=make_submission_in()))

    assert "timeout" in exc.value.message
    assert len(notifier.calls) == 1
    db.expire_all()
    assert db.get(Submission, exc.value.submission_id).status == SubmissionStatus.FAILED


def test_video_is_processed_uploaded_and_cleaned_up(db, services, media, blobs):
    student = make_student(db)
    video = VideoUpload(content=b"fake-video", filename="talk.mp4", content_type="video/mp4")

    result = asyncio.run(
        services.submissions.submit(
            db,
            student_id=student.id,
            obj_in=make_submission_in(category=SubmissionCategory.SPEAKING),
            video=video,
        )
    )

    assert result.video_url.startswith("https://bucket.example/video-")
    assert result.audio_url.startswith("https://bucket.example/audio-")
    assert len(blobs.uploads) == 2
    for path in media.produced[0].paths:
        assert not Path(path).exists()

    assert _statuses(db, result.submission_id, LogStage.VIDEO_PROCESSING) == [LogStatus.STARTED, LogStatus.SUCCESS]
    assert _statuses(db, result.submission_id, LogStage.BLOB_UPLOAD) == [LogStatus.STARTED, LogStatus.SUCCESS]


def test_upload_failure_cleans_up_and_fails(db, services, media, blobs, evaluator):
    student = make_student(db)
    blobs.fail = True
    video = VideoUpload(content=b"fake-video", filename="talk.mp4", content_type="video/mp4")

    with pytest.raises(EvaluationFailedError) as exc:
        asyncio.run(
            services.submissions.submit(db, student_id=student.id, obj_in=make_submission_in(), video=video)
        )

    assert "bucket unavailable" in exc.value.message
    for path in media.produced[0].paths:
        assert not Path(path).exists()
    # AI stage never ran
    assert evaluator.calls == []
    assert _statuses(db, exc.value.submission_id, LogStage.BLOB_UPLOAD) == [LogStatus.STARTED, LogStatus.FAILED]


def test_media_failure_stops_pipeline(db, services, media, evaluator):
    student = make_student(db)
    media.error = MediaProcessingError("ffmpeg crop failed (exit 1): bad input")
    video = VideoUpload(content=b"x", filename="talk.mp4", content_type="video/mp4")

    with pytest.raises(EvaluationFailedError):
        asyncio.run(
            services.submissions.submit(db, student_id=student.id, obj_in=make_submission_in(), video=video)
        )
    assert evaluator.calls == []


def test_get_submission_is_cached_and_scoped_to_student(db, services, cache):
    owner = make_student(db, "Owner")
    other = make_student(db, "Other")
    result = asyncio.run(services.submissions.submit(db, student_id=owner.id, obj_in=make_submission_in()))

    fetched = asyncio.run(services.submissions.get_submission(db, result.submission_id, owner.id))
    assert fetched.score == 8
    assert cache.submission_key(result.submission_id) in cache.redis.store

    with pytest.raises(NotFoundError):
        asyncio.run(services.submissions.get_submission(db, result.submission_id, other.id))


def test_student_submissions_newest_first(db, services):
    student = make_student(db)
    first = asyncio.run(services.submissions.submit(db, student_id=student.id, obj_in=make_submission_in()))
    second = asyncio.run(
        services.submissions.submit(
            db, student_id=student.id, obj_in=make_submission_in(category=SubmissionCategory.READING)
        )
    )

    items = asyncio.run(services.submissions.get_student_submissions(db, student.id))
    assert [s.id for s in items] == [second.submission_id, first.submission_id]


def test_delete_submission_removes_logs_and_revisions(db, services, evaluator, cache):
    student = make_student(db)
    evaluator.error = AIEvaluationError(AIErrorKind.NETWORK, "connection reset")
    with pytest.raises(EvaluationFailedError) as exc:
        asyncio.run(services.submissions.submit(db, student_id=student.id, obj_in=make_submission_in()))
    submission_id = exc.value.submission_id

    asyncio.run(services.submissions.delete_submission(db, submission_id, student.id))

    assert db.query(Submission).count() == 0
    assert db.query(EvaluationLog).count() == 0
    assert db.query(Revision).count() == 0
    assert cache.submission_key(submission_id) not in cache.redis.store


def test_delete_student_cascades(db, services):
    student = make_student(db)
    asyncio.run(services.submissions.submit(db, student_id=student.id, obj_in=make_submission_in()))
    asyncio.run(
        services.submissions.submit(
            db, student_id=student.id, obj_in=make_submission_in(category=SubmissionCategory.LISTENING)
        )
    )

    asyncio.run(services.submissions.delete_student(db, student))

    assert db.query(Submission).count() == 0
    assert db.query(EvaluationLog).count() == 0


def test_revision_insert_failure_still_raises_evaluation_error(
    db, services, evaluator, notifier, cache, monkeypatch
):
    def locked(*args, **kwargs):
        raise RuntimeError("revisions table locked")

    monkeypatch.setattr(revision_service, "create_revision_record", locked)
    student = make_student(db)
    asyncio.run(cache.set(cache.student_submissions_key(student.id), [], 60))
    evaluator.error = AIEvaluationError(AIErrorKind.NETWORK, "connection reset")

    with pytest.raises(EvaluationFailedError) as exc:
        asyncio.run(services.submissions.submit(db, student_id=student.id, obj_in=make_submission_in()))

    assert "connection reset" in exc.value.message
    db.expire_all()
    assert db.get(Submission, exc.value.submission_id).status == SubmissionStatus.FAILED
    assert db.query(Revision).count() == 0
    assert len(notifier.calls) == 1
    assert cache.student_submissions_key(student.id) not in cache.redis.store
    assert len(services.submissions.guard) == 0


def _seed_listing(db, services, evaluator):
    alice = make_student(db, "Alice Kim")
    bob = make_student(db, "Bob Lee")
    failing_text = "This essay will not be scored by the model today."
    evaluator.fail_texts.add(failing_text)

    asyncio.run(
        services.submissions.submit(db, student_id=alice.id, obj_in=make_submission_in(title="Essay about school"))
    )
    asyncio.run(
        services.submissions.submit(
            db,
            student_id=alice.id,
            obj_in=make_submission_in(category=SubmissionCategory.READING, title="Book report"),
        )
    )
    with pytest.raises(EvaluationFailedError):
        asyncio.run(
            services.submissions.submit(
                db, student_id=bob.id, obj_in=make_submission_in(text=failing_text, title="My School Day")
            )
        )
    return alice, bob


def test_list_all_submissions_filters(db, services, evaluator):
    alice, bob = _seed_listing(db, services, evaluator)

    everything = services.submissions.list_all_submissions(db)
    assert everything.total == 3
    assert everything.total_pages == 1

    failed = services.submissions.list_all_submissions(db, status=SubmissionStatus.FAILED)
    assert [s.student_id for s in failed.items] == [bob.id]

    by_student = services.submissions.list_all_submissions(db, student_id=alice.id)
    assert {s.student_id for s in by_student.items} == {alice.id}
    assert by_student.total == 2

    # substring matches, case-insensitive
    by_name = services.submissions.list_all_submissions(db, student_name="ali")
    assert by_name.total == 2
    by_title = services.submissions.list_all_submissions(db, title="SCHOOL")
    assert sorted(s.title for s in by_title.items) == ["Essay about school", "My School Day"]

    combined = services.submissions.list_all_submissions(db, student_name="bob", title="school")
    assert [s.title for s in combined.items] == ["My School Day"]


def test_list_all_submissions_sorts_and_pages(db, services, evaluator):
    _seed_listing(db, services, evaluator)

    first = services.submissions.list_all_submissions(db, page=1, size=2, sort="title,ASC")
    assert [s.title for s in first.items] == ["Book report", "Essay about school"]
    assert first.total == 3
    assert first.total_pages == 2

    second = services.submissions.list_all_submissions(db, page=2, size=2, sort="title,ASC")
    assert [s.title for s in second.items] == ["My School Day"]

    newest = services.submissions.list_all_submissions(db)
    assert newest.items[0].title == "My School Day"

    with pytest.raises(InvalidRequestError):
        services.submissions.list_all_submissions(db, sort="submit_text,ASC")
    with pytest.raises(InvalidRequestError):
        services.submissions.list_all_submissions(db, sort="title,UP")
