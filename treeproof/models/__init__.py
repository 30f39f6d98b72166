"""SQLModel table/entity definitions. Used by Repository layer only."""

from treeproof.models.entities import FINGERPRINT_INDEX_NAME, TreeSubmission

__all__ = ["FINGERPRINT_INDEX_NAME", "TreeSubmission"]
