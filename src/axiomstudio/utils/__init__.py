"""
Axiom Studio utilities: JSON cleanup, image bytes, Gemini adapter.
"""

from .json_utils import (
    clean_json_response,
    parse_json_response,
)

from .image_utils import (
    sniff_mime_type,
    to_png_bytes,
    save_image,
)

__all__ = [
    "clean_json_response",
    "parse_json_response",
    "sniff_mime_type",
    "to_png_bytes",
    "save_image",
]
