"""
Image byte helpers (Pillow).
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Union

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger("axiomstudio.image_utils")

_FORMAT_MIME = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


def sniff_mime_type(data: bytes, default: str = "image/png") -> str:
    """Detect the image media type from its bytes; ``default`` if unknown."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return _FORMAT_MIME.get(img.format or "", default)
    except (UnidentifiedImageError, OSError):
        logger.debug(f"Could not identify image bytes; assuming {default}")
        return default


def to_png_bytes(data: bytes) -> bytes:
    """Re-encode any Pillow-readable image as PNG."""
    with Image.open(io.BytesIO(data)) as img:
        if img.format == "PNG":
            return data
        buffer = io.BytesIO()
        img.convert("RGBA" if "A" in img.getbands() else "RGB").save(buffer, format="PNG", optimize=True)
        return buffer.getvalue()


def save_image(data: bytes, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(to_png_bytes(data))
    return path
