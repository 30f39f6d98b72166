"""Abstract base and mock implementation for image labelers."""

import asyncio
from abc import ABC, abstractmethod

from treeproof.ai.schema import ImageRef, Label, LabelSet, ModelCard

DEFAULT_MOCK_LABELS = ("tree", "plant", "leaf", "grass")


class BaseLabeler(ABC):
    """Abstract base for image labeling services (label + confidence per image)."""

    @abstractmethod
    def get_model_card(self) -> ModelCard:
        """Return model identity (name, version)."""
        ...

    @abstractmethod
    async def detect_labels(self, image: ImageRef) -> LabelSet:
        """Return labels for the image, or raise UpstreamError."""
        ...

    async def aclose(self) -> None:
        """Release network resources. Called by the process entry point on shutdown."""
        return None


class MockLabeler(BaseLabeler):
    """Placeholder labeler for testing and development. Returns the same labels for every image."""

    def __init__(self, labels: list[str] | tuple[str, ...] = DEFAULT_MOCK_LABELS, delay_seconds: float = 0.0) -> None:
        self._labels = list(labels)
        self._delay_seconds = delay_seconds

    def get_model_card(self) -> ModelCard:
        return ModelCard(name="mock-labeler", version="1.0")

    async def detect_labels(self, image: ImageRef) -> LabelSet:
        if self._delay_seconds:
            await asyncio.sleep(self._delay_seconds)
        return LabelSet(labels=[Label(description=d, score=1.0) for d in self._labels])
