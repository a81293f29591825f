"""
Inspect uploaded image bytes with Pillow (width, height, format, size_kb).
"""
from io import BytesIO
from typing import Any, Dict

from PIL import Image, UnidentifiedImageError

ALLOWED_IMAGE_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp", "image/jpg"}

_EXTENSIONS = {"JPEG": ".jpg", "PNG": ".png", "WEBP": ".webp"}


class InvalidImage(ValueError):
    """Bytes are not a decodable image in an accepted format."""


def extract_image_metadata(content: bytes) -> Dict[str, Any]:
    """
    Width, height, format and size_kb of an image.

    Raises:
        InvalidImage: content is empty, unreadable, or not JPEG/PNG/WebP
    """
    if not content:
        raise InvalidImage("Image is empty.")
    try:
        with Image.open(BytesIO(content)) as img:
            width, height = img.size
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise InvalidImage("File is not a readable image.") from e
    if fmt not in _EXTENSIONS:
        raise InvalidImage(f"Unsupported image format: {fmt}.")
    return {
        "width": width,
        "height": height,
        "format": fmt,
        "size_kb": round(len(content) / 1024.0, 2),
    }


def extension_for(metadata: Dict[str, Any]) -> str:
    """File extension matching the detected format."""
    return _EXTENSIONS.get(metadata.get("format"), ".jpg")
