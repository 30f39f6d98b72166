"""Duplicate gate: exact fingerprint lookup against previously accepted submissions."""

import asyncio
import logging
from typing import Protocol

from treeproof.verification.classifier import Classification
from treeproof.verification.schema import Submission

_log = logging.getLogger(__name__)


class FingerprintStore(Protocol):
    """Persisted fingerprints of accepted submissions, unique on fingerprint."""

    def exists(self, fingerprint: str) -> bool: ...

    def insert(
        self, fingerprint: str, submission: Submission, classification: Classification
    ) -> int:
        """Persist an accepted submission; raise DuplicateKeyError if the fingerprint is taken."""
        ...


async def is_duplicate(fingerprint: str, store: FingerprintStore) -> bool:
    """
    Return True if an accepted submission with this fingerprint exists.

    Read-only. The store is synchronous (SQLAlchemy sessions), so the lookup runs in a
    worker thread to keep the event loop free for other verifications.
    """
    found = await asyncio.to_thread(store.exists, fingerprint)
    _log.debug("Duplicate gate: fingerprint=%s duplicate=%s", fingerprint, found)
    return bool(found)
