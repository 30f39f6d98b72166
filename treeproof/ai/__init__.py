"""AI module: labeling contracts and labeler implementations."""

from treeproof.ai.schema import ImageRef, Label, LabelSet, ModelCard
from treeproof.ai.labeler_base import BaseLabeler, MockLabeler

__all__ = [
    "BaseLabeler",
    "ImageRef",
    "Label",
    "LabelSet",
    "MockLabeler",
    "ModelCard",
]
