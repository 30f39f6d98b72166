"""Labeler backed by the Google Cloud Vision REST API (images:annotate, LABEL_DETECTION).

Requires an API key (config vision_api_key or GOOGLE_VISION_API_KEY). The key is only
checked on the first call so that a misconfigured deployment still starts and reports
every verification as an upstream error instead of accepting anything.

Uses one httpx.AsyncClient with connection pooling for the life of the labeler; the
owner must call aclose() on shutdown.
"""

import base64
import logging

import httpx

from treeproof.ai.labeler_base import BaseLabeler
from treeproof.ai.schema import ImageRef, Label, LabelSet, ModelCard
from treeproof.verification.errors import CredentialsError, LabelingError

_log = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://vision.googleapis.com/v1"
DEFAULT_MAX_RESULTS = 10


def _image_payload(image: ImageRef) -> dict:
    if image.uri is not None:
        return {"source": {"imageUri": image.uri}}
    return {"content": base64.b64encode(image.content or b"").decode("ascii")}


def _parse_labels(data: object) -> LabelSet:
    """Extract labelAnnotations from an annotate response. Raises LabelingError on bad shape."""
    if not isinstance(data, dict):
        raise LabelingError("Malformed Vision response: body is not an object")
    responses = data.get("responses")
    if not isinstance(responses, list) or not responses:
        raise LabelingError("Malformed Vision response: missing responses")
    first = responses[0]
    if not isinstance(first, dict):
        raise LabelingError("Malformed Vision response: response is not an object")
    error = first.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise LabelingError(f"Vision API error: {message}")
    # An image with no recognizable content returns no labelAnnotations key at all.
    annotations = first.get("labelAnnotations") or []
    if not isinstance(annotations, list):
        raise LabelingError("Malformed Vision response: labelAnnotations is not a list")
    labels: list[Label] = []
    for ann in annotations:
        if not isinstance(ann, dict) or not isinstance(ann.get("description"), str):
            raise LabelingError("Malformed Vision response: label without description")
        score = ann.get("score")
        labels.append(
            Label(
                description=ann["description"].lower(),
                score=float(score) if isinstance(score, (int, float)) else None,
            )
        )
    return LabelSet(labels=labels)


class GoogleVisionLabeler(BaseLabeler):
    """Calls Cloud Vision label detection for a URI or inline image bytes."""

    def __init__(
        self,
        api_key: str | None,
        *,
        endpoint: str = DEFAULT_ENDPOINT,
        max_results: int = DEFAULT_MAX_RESULTS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._endpoint = (endpoint.strip() or DEFAULT_ENDPOINT).rstrip("/")
        self._max_results = max_results
        # No client-side timeout: the pipeline bounds every call with its own deadline.
        self._client = httpx.AsyncClient(
            timeout=None,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            transport=transport,
        )

    def get_model_card(self) -> ModelCard:
        return ModelCard(name="google-vision", version="v1")

    async def detect_labels(self, image: ImageRef) -> LabelSet:
        if not self._api_key:
            raise CredentialsError("Vision credentials not set")
        payload = {
            "requests": [
                {
                    "image": _image_payload(image),
                    "features": [{"type": "LABEL_DETECTION", "maxResults": self._max_results}],
                }
            ]
        }
        url = f"{self._endpoint}/images:annotate"
        try:
            resp = await self._client.post(url, params={"key": self._api_key}, json=payload)
        except httpx.HTTPError as e:
            raise LabelingError(f"Vision request failed: {type(e).__name__}: {e}") from e

        if resp.status_code in (401, 403):
            raise CredentialsError(f"Vision credentials rejected (HTTP {resp.status_code})")
        if resp.status_code >= 400:
            raise LabelingError(f"Vision API returned HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise LabelingError("Malformed Vision response: body is not JSON") from e

        labels = _parse_labels(data)
        _log.debug("Vision labels for %s: %s", image.describe(), labels.descriptions())
        return labels

    async def aclose(self) -> None:
        await self._client.aclose()
