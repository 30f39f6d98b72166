"""Factory for labelers. Built once by the process entry point and injected into the pipeline."""

from treeproof.ai.labeler_base import BaseLabeler
from treeproof.core.config import Settings


def get_labeler(labeler_name: str, settings: Settings) -> BaseLabeler:
    """Return a labeler by name. Credentials come from settings; they are not checked here."""
    if labeler_name == "mock":
        from treeproof.ai.labeler_base import MockLabeler

        return MockLabeler()
    if labeler_name == "google-vision":
        from treeproof.ai.labeler_google import GoogleVisionLabeler

        return GoogleVisionLabeler(
            settings.vision_api_key,
            endpoint=settings.vision_endpoint,
            max_results=settings.vision_max_results,
        )
    raise ValueError(f"Unknown labeler: {labeler_name}")
