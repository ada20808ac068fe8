"""
service.py – Generative service contract
========================================

The pipeline talks to the image/text model only through this two-method
interface, so tests can inject a scripted fake and production code can plug
in ``utils.gemini_service.GeminiService``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from .models import ImageResponse


@dataclass(frozen=True)
class PromptPart:
    """A single request part: either text or inline binary data."""
    text: Optional[str] = None
    data: Optional[bytes] = None
    mime_type: Optional[str] = None

    @classmethod
    def from_text(cls, text: str) -> "PromptPart":
        return cls(text=text)

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> "PromptPart":
        return cls(data=data, mime_type=mime_type)

    @property
    def is_inline(self) -> bool:
        return self.data is not None


class GenerativeService(Protocol):
    def generate_structured(
        self,
        system_framing: str,
        parts: List[PromptPart],
        output_schema: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Return the parsed JSON object, or raise OutputContractError."""
        ...

    def generate_image(
        self,
        system_framing: str,
        parts: List[PromptPart],
        image_config: Dict[str, str],
    ) -> ImageResponse:
        ...
