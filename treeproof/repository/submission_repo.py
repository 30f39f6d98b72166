"""Accepted-submission store: fingerprint lookup and insert with a uniqueness constraint."""

from contextlib import contextmanager
from typing import Callable, Iterator

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from treeproof.models.entities import FINGERPRINT_INDEX_NAME, TreeSubmission
from treeproof.verification.classifier import Classification
from treeproof.verification.errors import DuplicateKeyError
from treeproof.verification.schema import Submission

# PostgreSQL SQLSTATE for unique_violation.
UNIQUE_VIOLATION = "23505"


def _is_fingerprint_violation(err: IntegrityError) -> bool:
    orig = err.orig
    if getattr(orig, "pgcode", None) == UNIQUE_VIOLATION:
        diag = getattr(orig, "diag", None)
        constraint = getattr(diag, "constraint_name", None)
        return constraint in (None, FINGERPRINT_INDEX_NAME)
    return FINGERPRINT_INDEX_NAME in str(orig)


class SubmissionRepository:
    """
    Database access for accepted tree submissions.
    Used by the verification pipeline as its fingerprint store, and by the CLI.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session_scope(self, write: bool = False) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            if write:
                session.commit()
        finally:
            session.close()

    def exists(self, fingerprint: str) -> bool:
        """Return True if an accepted submission with this exact fingerprint exists (indexed lookup)."""
        with self._session_scope() as session:
            row = session.execute(
                select(TreeSubmission.id).where(TreeSubmission.fingerprint == fingerprint).limit(1)
            ).first()
        return row is not None

    def insert(
        self, fingerprint: str, submission: Submission, classification: Classification
    ) -> int:
        """
        Persist an accepted submission and return its id.
        Raises DuplicateKeyError when the fingerprint is already stored (unique index).
        """
        record = TreeSubmission(
            fingerprint=fingerprint,
            user_id=submission.user_id,
            user_email=submission.user_email,
            species=submission.species,
            planted_on=submission.planted_on,
            latitude=submission.latitude,
            longitude=submission.longitude,
            image_url=submission.image_url,
            labels=list(classification.labels),
            matched_keywords=list(classification.matched_keywords),
        )
        session = self._session_factory()
        try:
            session.add(record)
            session.commit()
            record_id = record.id
        except IntegrityError as e:
            session.rollback()
            if _is_fingerprint_violation(e):
                raise DuplicateKeyError(fingerprint) from e
            raise
        finally:
            session.close()
        if record_id is None:
            raise RuntimeError(f"Insert for {fingerprint} returned no id")
        return record_id

    def get_by_fingerprint(self, fingerprint: str) -> TreeSubmission | None:
        """Return the accepted submission for the fingerprint, or None."""
        with self._session_scope() as session:
            return session.execute(
                select(TreeSubmission).where(TreeSubmission.fingerprint == fingerprint)
            ).scalar_one_or_none()

    def list_recent(self, limit: int = 20) -> list[TreeSubmission]:
        """Return the most recently accepted submissions, newest first."""
        with self._session_scope() as session:
            result = session.execute(
                select(TreeSubmission)
                .order_by(TreeSubmission.created_at.desc(), TreeSubmission.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    def count_by_user(self, user_id: str) -> int:
        """Return the number of accepted submissions for a user."""
        with self._session_scope() as session:
            n = session.execute(
                select(func.count()).select_from(TreeSubmission).where(TreeSubmission.user_id == user_id)
            ).scalar()
        return int(n or 0)
