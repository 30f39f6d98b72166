"""Repository layer: database access only. No ORM calls in business logic."""

from treeproof.repository.submission_repo import SubmissionRepository

__all__ = ["SubmissionRepository"]
