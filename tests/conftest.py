"""Pytest fixtures. Fakes for the labeler and fingerprint store; testcontainers-python for PostgreSQL."""

import asyncio
import io
import os
import threading

import pytest
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from testcontainers.postgres import PostgresContainer

from treeproof.ai.labeler_base import BaseLabeler
from treeproof.ai.schema import ImageRef, Label, LabelSet, ModelCard
from treeproof.verification.classifier import Classification
from treeproof.verification.errors import DuplicateKeyError
from treeproof.verification.schema import Submission


def png_bytes(color: tuple[int, int, int] = (34, 139, 34), size: tuple[int, int] = (8, 8)) -> bytes:
    """Encode a solid-color PNG in memory. Different colors give different bytes."""
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


class RecordingLabeler(BaseLabeler):
    """Labeler double: returns fixed labels (or raises) and records every call."""

    def __init__(
        self,
        labels: list[str] | None = None,
        *,
        error: Exception | None = None,
        delay_seconds: float = 0.0,
    ) -> None:
        self.labels = labels if labels is not None else ["tree", "plant"]
        self.error = error
        self.delay_seconds = delay_seconds
        self.calls: list[ImageRef] = []
        self.closed = False

    def get_model_card(self) -> ModelCard:
        return ModelCard(name="recording-labeler", version="test")

    async def detect_labels(self, image: ImageRef) -> LabelSet:
        self.calls.append(image)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return LabelSet(labels=[Label(description=d, score=0.9) for d in self.labels])

    async def aclose(self) -> None:
        self.closed = True


class InMemoryStore:
    """Fingerprint store double with the same uniqueness contract as SubmissionRepository."""

    def __init__(self) -> None:
        self.rows: dict[str, dict] = {}
        self.exists_calls = 0
        self.insert_calls = 0
        self._lock = threading.Lock()

    def exists(self, fingerprint: str) -> bool:
        with self._lock:
            self.exists_calls += 1
            return fingerprint in self.rows

    def insert(self, fingerprint: str, submission: Submission, classification: Classification) -> int:
        with self._lock:
            self.insert_calls += 1
            if fingerprint in self.rows:
                raise DuplicateKeyError(fingerprint)
            self.rows[fingerprint] = {
                "id": len(self.rows) + 1,
                "user_id": submission.user_id,
                "labels": list(classification.labels),
                "matched_keywords": list(classification.matched_keywords),
            }
            return self.rows[fingerprint]["id"]


class RacingStore(InMemoryStore):
    """Gate never sees the fingerprint, but the insert hits the unique constraint."""

    def exists(self, fingerprint: str) -> bool:
        with self._lock:
            self.exists_calls += 1
        return False

    def insert(self, fingerprint: str, submission: Submission, classification: Classification) -> int:
        with self._lock:
            self.insert_calls += 1
        raise DuplicateKeyError(fingerprint)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def labeler() -> RecordingLabeler:
    return RecordingLabeler()


def clear_app_db_caches() -> None:
    """
    Clear the app's config and DB-related caches. Call this in any fixture that
    sets DATABASE_URL (e.g. to a testcontainer URL) so the app uses the new URL
    instead of a previously cached connection.
    """
    from treeproof.api.main import (
        _get_engine,
        _get_labeler,
        _get_pipeline,
        _get_session_factory,
        _get_submission_repo,
    )
    from treeproof.core import config as config_module

    config_module._config = None  # type: ignore[attr-defined]
    _get_engine.cache_clear()
    _get_session_factory.cache_clear()
    _get_submission_repo.cache_clear()
    _get_labeler.cache_clear()
    _get_pipeline.cache_clear()


@pytest.fixture(scope="module")
def postgres_container():
    """Module-scoped PostgreSQL 16 container (testcontainers)."""
    with PostgresContainer("postgres:16-alpine") as postgres:
        yield postgres


@pytest.fixture(scope="module")
def engine(postgres_container):
    """Module-scoped SQLAlchemy engine bound to the Postgres testcontainer."""
    url = postgres_container.get_connection_url()
    prev = os.environ.get("DATABASE_URL")
    os.environ["DATABASE_URL"] = url
    clear_app_db_caches()
    try:
        yield create_engine(url, pool_pre_ping=True)
    finally:
        if prev is not None:
            os.environ["DATABASE_URL"] = prev
        else:
            os.environ.pop("DATABASE_URL", None)
        clear_app_db_caches()


@pytest.fixture(scope="module")
def _session_factory(engine):
    """Module-scoped session factory (used to create per-test sessions)."""
    return sessionmaker(engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def session(engine, _session_factory):
    """Function-scoped, clean SQLAlchemy session. Each test runs in a transaction that is rolled back."""
    connection = engine.connect()
    transaction = connection.begin()
    session = Session(bind=connection, expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()
