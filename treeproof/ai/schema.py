"""Pydantic data contracts for labeling models and their output."""

from pydantic import BaseModel, Field, model_validator


class ModelCard(BaseModel):
    """Metadata identifying a labeling model/provider."""

    name: str
    version: str


class Label(BaseModel):
    """One machine-generated label with its confidence score (0..1) when the provider reports one."""

    description: str
    score: float | None = None


class LabelSet(BaseModel):
    """Ordered labels produced for one image. Consumed read-only by the classifier."""

    labels: list[Label] = Field(default_factory=list)

    def descriptions(self) -> list[str]:
        return [label.description for label in self.labels]

    def __len__(self) -> int:
        return len(self.labels)


class ImageRef(BaseModel):
    """Reference to the image to label: inline bytes or a URI the provider can fetch."""

    content: bytes | None = None
    uri: str | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "ImageRef":
        if (self.content is None) == (self.uri is None):
            raise ValueError("ImageRef needs exactly one of content or uri")
        return self

    def describe(self) -> str:
        """Short description for logs (never the raw bytes)."""
        if self.uri is not None:
            return self.uri
        return f"<{len(self.content or b'')} bytes>"
