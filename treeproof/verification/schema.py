"""Pipeline contracts: intake Submission and terminal Verdict."""

from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from treeproof.verification.classifier import Classification, ClassificationOutcome

MESSAGE_ACCEPTED = "Tree/plant detected"
MESSAGE_ARTIFICIAL = "Image appears to be artificial (drawing/toy/illustration)"
MESSAGE_NO_MATCH = "No tree or plant detected"
MESSAGE_DUPLICATE = "Duplicate image detected! Already submitted."
MESSAGE_UPSTREAM = "Vision API error"


class VerdictStatus(str, Enum):
    accepted = "accepted"
    rejected_duplicate = "rejected_duplicate"
    rejected_artificial = "rejected_artificial"
    rejected_no_match = "rejected_no_match"
    rejected_upstream_error = "rejected_upstream_error"


_OUTCOME_TO_STATUS = {
    ClassificationOutcome.accept: VerdictStatus.accepted,
    ClassificationOutcome.reject_artificial: VerdictStatus.rejected_artificial,
    ClassificationOutcome.reject_no_match: VerdictStatus.rejected_no_match,
}

_STATUS_MESSAGES = {
    VerdictStatus.accepted: MESSAGE_ACCEPTED,
    VerdictStatus.rejected_artificial: MESSAGE_ARTIFICIAL,
    VerdictStatus.rejected_no_match: MESSAGE_NO_MATCH,
    VerdictStatus.rejected_duplicate: MESSAGE_DUPLICATE,
    VerdictStatus.rejected_upstream_error: MESSAGE_UPSTREAM,
}


class Submission(BaseModel):
    """Raw image bytes plus the metadata stored alongside an accepted submission."""

    image: bytes
    user_id: str
    image_url: str | None = None
    user_email: str | None = None
    species: str | None = None
    planted_on: date | None = None
    latitude: float | None = None
    longitude: float | None = None


class Verdict(BaseModel):
    """The single terminal outcome of one verification."""

    status: VerdictStatus
    message: str
    fingerprint: str | None = None
    labels: list[str] = Field(default_factory=list)
    matched_keywords: list[str] = Field(default_factory=list)
    cause: str | None = None
    submission_id: int | None = None

    @property
    def success(self) -> bool:
        return self.status == VerdictStatus.accepted

    @classmethod
    def from_classification(
        cls, classification: Classification, *, fingerprint: str | None = None
    ) -> "Verdict":
        status = _OUTCOME_TO_STATUS[classification.outcome]
        return cls(
            status=status,
            message=_STATUS_MESSAGES[status],
            fingerprint=fingerprint,
            labels=classification.labels,
            matched_keywords=classification.matched_keywords if status == VerdictStatus.accepted else [],
        )

    @classmethod
    def duplicate(cls, fingerprint: str, *, labels: list[str] | None = None) -> "Verdict":
        return cls(
            status=VerdictStatus.rejected_duplicate,
            message=MESSAGE_DUPLICATE,
            fingerprint=fingerprint,
            labels=labels or [],
        )

    @classmethod
    def upstream_error(cls, cause: str, *, fingerprint: str | None = None) -> "Verdict":
        return cls(
            status=VerdictStatus.rejected_upstream_error,
            message=MESSAGE_UPSTREAM,
            fingerprint=fingerprint,
            cause=cause,
        )

    def to_response(self) -> dict[str, Any]:
        """JSON body for the intake boundary (camelCase keys)."""
        body: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.status != VerdictStatus.rejected_upstream_error:
            body["labels"] = list(self.labels)
        if self.success:
            body["matchedKeywords"] = list(self.matched_keywords)
        if self.fingerprint is not None:
            body["fingerprint"] = self.fingerprint
        if self.submission_id is not None:
            body["submissionId"] = self.submission_id
        if self.cause is not None:
            body["error"] = self.cause
        return body
