"""Lightweight check that an uploaded blob is a decodable image (Pillow)."""

import io
import logging

from PIL import Image, UnidentifiedImageError

from treeproof.verification.errors import ValidationError

_log = logging.getLogger(__name__)


def probe_image_format(data: bytes) -> str:
    """
    Return the image format reported by Pillow (e.g. 'JPEG', 'PNG').

    Only the header is parsed and verified; pixels are not decoded.
    Raises ValidationError when data is empty or not a recognizable image.
    """
    if not data:
        raise ValidationError("No image provided")
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        _log.debug("Image probe failed: %s", e)
        raise ValidationError("Uploaded file is not a recognizable image") from e
    return fmt or "UNKNOWN"
