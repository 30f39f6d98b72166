"""Verification orchestrator: fingerprint -> duplicate gate -> labels -> classify -> verdict."""

import asyncio
import logging

from treeproof.ai.labeler_base import BaseLabeler
from treeproof.ai.schema import ImageRef, LabelSet
from treeproof.verification.classifier import ClassificationOutcome, classify
from treeproof.verification.duplicates import FingerprintStore, is_duplicate
from treeproof.verification.errors import DuplicateKeyError, UpstreamError
from treeproof.verification.fingerprint import fingerprint
from treeproof.verification.policy import KeywordPolicy
from treeproof.verification.schema import Submission, Verdict

_log = logging.getLogger(__name__)

DEFAULT_LABEL_TIMEOUT_SECONDS = 10.0


class VerificationPipeline:
    """
    Runs one submission through the decision pipeline and returns exactly one Verdict.

    Stateless across requests: the labeler and store are injected handles owned by the
    process entry point, the policy is immutable. Terminal states are final; nothing is
    retried here. Cancellation of the caller propagates into the pending label call and
    nothing is persisted.
    """

    def __init__(
        self,
        labeler: BaseLabeler,
        store: FingerprintStore,
        policy: KeywordPolicy,
        *,
        label_timeout_seconds: float = DEFAULT_LABEL_TIMEOUT_SECONDS,
    ) -> None:
        if label_timeout_seconds <= 0:
            raise ValueError("label_timeout_seconds must be positive")
        self.labeler = labeler
        self.store = store
        self.policy = policy
        self.label_timeout_seconds = label_timeout_seconds

    async def _acquire_labels(self, image: ImageRef) -> LabelSet:
        """Call the labeler under the timeout. Timeouts surface as UpstreamError."""
        try:
            return await asyncio.wait_for(
                self.labeler.detect_labels(image), timeout=self.label_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise UpstreamError(
                f"Labeling timed out after {self.label_timeout_seconds:g}s"
            ) from e

    async def verify(self, submission: Submission) -> Verdict:
        """Full pipeline for an uploaded image. Accepted submissions are persisted."""
        fp = fingerprint(submission.image)
        _log.debug("Fingerprinted submission from user %s: %s", submission.user_id, fp)

        if await is_duplicate(fp, self.store):
            _log.info("Rejected duplicate submission %s (user %s)", fp, submission.user_id)
            return Verdict.duplicate(fp)

        # Label the fingerprinted bytes; image_url is stored metadata only.
        image = ImageRef(content=submission.image)

        try:
            labels = await self._acquire_labels(image)
        except UpstreamError as e:
            _log.warning("Labeling failed for %s: %s", fp, e)
            return Verdict.upstream_error(str(e), fingerprint=fp)

        classification = classify(labels, self.policy)
        _log.debug(
            "Classified %s: outcome=%s matched=%s negative=%s",
            fp,
            classification.outcome.value,
            classification.matched_keywords,
            classification.negative_matches,
        )
        verdict = Verdict.from_classification(classification, fingerprint=fp)
        if classification.outcome != ClassificationOutcome.accept:
            _log.info("Rejected %s: %s labels=%s", fp, verdict.status.value, verdict.labels)
            return verdict

        try:
            submission_id = await asyncio.to_thread(
                self.store.insert, fp, submission, classification
            )
        except DuplicateKeyError:
            # Another request accepted the same image between our gate check and this insert.
            _log.info("Fingerprint %s was stored concurrently; rejecting as duplicate", fp)
            return Verdict.duplicate(fp, labels=classification.labels)

        _log.info("Accepted submission %s as id %s (matched %s)", fp, submission_id, verdict.matched_keywords)
        return verdict.model_copy(update={"submission_id": submission_id})

    async def verify_labels_only(self, image: ImageRef) -> Verdict:
        """Label and classify an already-uploaded image. No fingerprinting or persistence."""
        try:
            labels = await self._acquire_labels(image)
        except UpstreamError as e:
            _log.warning("Labeling failed for %s: %s", image.describe(), e)
            return Verdict.upstream_error(str(e))
        classification = classify(labels, self.policy)
        verdict = Verdict.from_classification(classification)
        _log.info("Classified %s: %s labels=%s", image.describe(), verdict.status.value, verdict.labels)
        return verdict
