"""Verification pipeline: fingerprinting, duplicate gate, keyword classification, orchestration."""

from treeproof.verification.classifier import Classification, ClassificationOutcome, classify
from treeproof.verification.errors import (
    CredentialsError,
    DuplicateKeyError,
    LabelingError,
    UpstreamError,
    ValidationError,
)
from treeproof.verification.fingerprint import fingerprint
from treeproof.verification.policy import KeywordPolicy
from treeproof.verification.schema import Submission, Verdict, VerdictStatus

__all__ = [
    "Classification",
    "ClassificationOutcome",
    "CredentialsError",
    "DuplicateKeyError",
    "KeywordPolicy",
    "LabelingError",
    "Submission",
    "UpstreamError",
    "ValidationError",
    "Verdict",
    "VerdictStatus",
    "classify",
    "fingerprint",
]
