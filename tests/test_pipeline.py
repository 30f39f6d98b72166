"""Tests for VerificationPipeline: state transitions, short-circuits, timeouts, cancellation."""

import asyncio

import pytest

from tests.conftest import InMemoryStore, RacingStore, RecordingLabeler, png_bytes
from treeproof.verification.errors import CredentialsError, LabelingError, UpstreamError
from treeproof.verification.fingerprint import fingerprint
from treeproof.verification.pipeline import VerificationPipeline
from treeproof.verification.policy import KeywordPolicy
from treeproof.verification.schema import Submission, VerdictStatus

pytestmark = [pytest.mark.fast]

POLICY = KeywordPolicy.default()


def _submission(image: bytes | None = None, **kwargs) -> Submission:
    return Submission(image=image if image is not None else png_bytes(), user_id="user-1", **kwargs)


def _pipeline(labeler, store, timeout: float = 1.0) -> VerificationPipeline:
    return VerificationPipeline(labeler, store, POLICY, label_timeout_seconds=timeout)


@pytest.mark.asyncio
async def test_accepted_submission_is_persisted_with_fingerprint(labeler, store):
    sub = _submission(species="Neem")
    verdict = await _pipeline(labeler, store).verify(sub)

    assert verdict.status == VerdictStatus.accepted
    assert verdict.success is True
    assert verdict.fingerprint == fingerprint(sub.image)
    assert verdict.matched_keywords == ["tree", "plant"]
    assert verdict.submission_id == 1
    assert store.rows[verdict.fingerprint]["user_id"] == "user-1"
    assert len(labeler.calls) == 1
    assert labeler.calls[0].content == sub.image


@pytest.mark.asyncio
async def test_second_identical_submission_short_circuits_before_labeling(labeler, store):
    """Same bytes twice: first accepted and stored; second rejected without a label call."""
    pipeline = _pipeline(labeler, store)
    image = png_bytes((10, 200, 10))

    first = await pipeline.verify(_submission(image))
    second = await pipeline.verify(_submission(image))

    assert first.status == VerdictStatus.accepted
    assert second.status == VerdictStatus.rejected_duplicate
    assert second.fingerprint == first.fingerprint
    assert len(labeler.calls) == 1
    assert store.insert_calls == 1


@pytest.mark.asyncio
async def test_rejected_image_is_not_stored_and_can_be_resubmitted(store):
    labeler = RecordingLabeler(["cartoon", "tree"])
    pipeline = _pipeline(labeler, store)
    image = png_bytes((1, 2, 3))

    first = await pipeline.verify(_submission(image))
    assert first.status == VerdictStatus.rejected_artificial
    assert first.labels == ["cartoon", "tree"]
    assert store.rows == {}

    labeler.labels = ["tree"]
    second = await pipeline.verify(_submission(image))
    assert second.status == VerdictStatus.accepted
    assert len(labeler.calls) == 2


@pytest.mark.asyncio
async def test_empty_successful_label_response_is_no_match(store):
    labeler = RecordingLabeler([])
    verdict = await _pipeline(labeler, store).verify(_submission())
    assert verdict.status == VerdictStatus.rejected_no_match
    assert verdict.labels == []
    assert store.insert_calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        UpstreamError("network down"),
        CredentialsError("Vision credentials not set"),
        LabelingError("Malformed Vision response: missing responses"),
    ],
)
async def test_labeler_failure_is_upstream_error_not_no_match(store, error):
    labeler = RecordingLabeler(error=error)
    verdict = await _pipeline(labeler, store).verify(_submission())
    assert verdict.status == VerdictStatus.rejected_upstream_error
    assert verdict.cause == str(error)
    assert verdict.fingerprint is not None
    assert store.insert_calls == 0


@pytest.mark.asyncio
async def test_label_timeout_is_upstream_error(store):
    labeler = RecordingLabeler(["tree"], delay_seconds=5.0)
    verdict = await _pipeline(labeler, store, timeout=0.05).verify(_submission())
    assert verdict.status == VerdictStatus.rejected_upstream_error
    assert "timed out" in (verdict.cause or "")
    assert store.rows == {}


@pytest.mark.asyncio
async def test_insert_conflict_after_classification_is_duplicate(labeler):
    """Gate passed but the unique constraint fired on insert (concurrent identical submission)."""
    store = RacingStore()
    verdict = await _pipeline(labeler, store).verify(_submission())
    assert verdict.status == VerdictStatus.rejected_duplicate
    assert verdict.labels == ["tree", "plant"]
    assert verdict.submission_id is None
    assert len(labeler.calls) == 1
    assert store.insert_calls == 1


@pytest.mark.asyncio
async def test_concurrent_identical_submissions_yield_one_acceptance(store):
    labeler = RecordingLabeler(["tree"], delay_seconds=0.05)
    pipeline = _pipeline(labeler, store)
    image = png_bytes((50, 60, 70))

    verdicts = await asyncio.gather(pipeline.verify(_submission(image)), pipeline.verify(_submission(image)))

    statuses = sorted(v.status.value for v in verdicts)
    assert statuses == ["accepted", "rejected_duplicate"]
    assert len(store.rows) == 1
    # Both passed the gate before either was stored.
    assert len(labeler.calls) == 2


@pytest.mark.asyncio
async def test_concurrent_distinct_submissions_are_independent(store):
    labeler = RecordingLabeler(["tree"], delay_seconds=0.02)
    pipeline = _pipeline(labeler, store)
    images = [png_bytes((i, i, i)) for i in range(5)]

    verdicts = await asyncio.gather(*(pipeline.verify(_submission(img)) for img in images))

    assert all(v.status == VerdictStatus.accepted for v in verdicts)
    assert len({v.fingerprint for v in verdicts}) == 5
    assert len(store.rows) == 5


@pytest.mark.asyncio
async def test_cancellation_during_labeling_propagates_and_persists_nothing(store):
    labeler = RecordingLabeler(["tree"], delay_seconds=5.0)
    pipeline = _pipeline(labeler, store, timeout=10.0)

    task = asyncio.create_task(pipeline.verify(_submission()))
    while not labeler.calls:
        await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert store.insert_calls == 0
    assert store.rows == {}


@pytest.mark.asyncio
async def test_labeler_receives_fingerprinted_bytes_not_image_url(labeler, store):
    url = "https://storage.example.com/trees/1.jpg"
    pipeline = _pipeline(labeler, store)
    subs = [_submission(png_bytes((i, 0, 0)), image_url=url) for i in range(3)]

    verdicts = [await pipeline.verify(sub) for sub in subs]

    assert [call.content for call in labeler.calls] == [sub.image for sub in subs]
    assert all(call.uri is None for call in labeler.calls)
    assert [v.fingerprint for v in verdicts] == [fingerprint(sub.image) for sub in subs]


@pytest.mark.asyncio
async def test_empty_image_bytes_are_fingerprinted(labeler, store):
    verdict = await _pipeline(labeler, store).verify(_submission(b""))
    assert verdict.fingerprint == fingerprint(b"")


@pytest.mark.asyncio
async def test_verify_labels_only_does_not_touch_store(labeler, store):
    from treeproof.ai.schema import ImageRef

    verdict = await _pipeline(labeler, store).verify_labels_only(ImageRef(uri="https://x/y.jpg"))
    assert verdict.status == VerdictStatus.accepted
    assert verdict.fingerprint is None
    assert store.exists_calls == 0
    assert store.insert_calls == 0


@pytest.mark.asyncio
async def test_verify_labels_only_upstream_error(store):
    from treeproof.ai.schema import ImageRef

    labeler = RecordingLabeler(error=LabelingError("Vision API returned HTTP 503"))
    verdict = await _pipeline(labeler, store).verify_labels_only(ImageRef(uri="https://x/y.jpg"))
    assert verdict.status == VerdictStatus.rejected_upstream_error
    assert verdict.cause == "Vision API returned HTTP 503"


def test_pipeline_rejects_non_positive_timeout(labeler, store):
    with pytest.raises(ValueError, match="positive"):
        VerificationPipeline(labeler, store, POLICY, label_timeout_seconds=0)
