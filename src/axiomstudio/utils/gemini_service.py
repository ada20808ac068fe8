"""
gemini_service.py – google-genai implementation of the generative service
==========================================================================

Two calls, both single-shot ``models.generate_content``:

- structured: text model, JSON response MIME type + response schema
- image: image model, IMAGE+TEXT modalities + aspect ratio / size

SDK errors are translated into the pipeline taxonomy and never retried here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..config import PipelineConfig, resolve_api_key
from ..errors import AuthorizationError, ServiceTransportError
from ..models import ImageResponse
from ..service import PromptPart
from .json_utils import parse_json_response

logger = logging.getLogger("axiomstudio.gemini")

AUTH_ERROR_CODES = (401, 403, 404)
ENTITY_NOT_FOUND = "Requested entity was not found"


def resolve_client(client: Any | None = None, api_key: str | None = None) -> Any:
    if client is not None:
        return client
    return genai.Client(api_key=resolve_api_key(api_key))


class GeminiService:
    """Generative service backed by the google-genai SDK."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        api_key: Optional[str] = None,
        client: Any = None,
    ):
        self.config = config or PipelineConfig()
        self.client = resolve_client(client, api_key)
        logger.info(
            f"Gemini service ready (text={self.config.text_model}, image={self.config.image_model})"
        )

    # ---- public contract ----

    def generate_structured(
        self,
        system_framing: str,
        parts: List[PromptPart],
        output_schema: Dict[str, Any],
    ) -> Dict[str, Any]:
        response = self._generate(
            model=self.config.text_model,
            parts=parts,
            config=types.GenerateContentConfig(
                system_instruction=system_framing,
                response_mime_type="application/json",
                response_schema=output_schema,
            ),
        )
        return parse_json_response(self._response_text(response))

    def generate_image(
        self,
        system_framing: str,
        parts: List[PromptPart],
        image_config: Dict[str, str],
    ) -> ImageResponse:
        response = self._generate(
            model=self.config.image_model,
            parts=parts,
            config=types.GenerateContentConfig(
                system_instruction=system_framing,
                response_modalities=["IMAGE", "TEXT"],
                image_config=types.ImageConfig(
                    aspect_ratio=image_config.get("aspect_ratio"),
                    image_size=image_config.get("image_size"),
                ),
            ),
        )

        image_bytes = None
        mime_type = "image/png"
        texts = []
        for part in self._response_parts(response):
            if part.inline_data and part.inline_data.data:
                image_bytes = part.inline_data.data
                mime_type = part.inline_data.mime_type or mime_type
            if getattr(part, "text", None):
                texts.append(part.text)

        if image_bytes is None:
            logger.warning("Image response carried no inline image data")
        return ImageResponse(image_bytes=image_bytes, text="".join(texts), mime_type=mime_type)

    # ---- internal ----

    def _generate(self, model: str, parts: List[PromptPart], config: Any) -> Any:
        contents = [types.Content(role="user", parts=[self._to_sdk_part(p) for p in parts])]
        logger.debug(f"generate_content model={model} parts={len(parts)}")
        try:
            return self.client.models.generate_content(model=model, contents=contents, config=config)
        except genai_errors.ClientError as e:
            if e.code in AUTH_ERROR_CODES or ENTITY_NOT_FOUND in str(e):
                logger.error(f"Gemini rejected credentials: {e}")
                raise AuthorizationError(str(e)) from e
            raise ServiceTransportError(str(e)) from e
        except genai_errors.APIError as e:
            logger.error(f"Gemini service error: {e}")
            raise ServiceTransportError(str(e)) from e
        except httpx.HTTPError as e:
            logger.error(f"Gemini transport error: {e}")
            raise ServiceTransportError(str(e)) from e

    @staticmethod
    def _to_sdk_part(part: PromptPart) -> types.Part:
        if part.is_inline:
            return types.Part.from_bytes(data=part.data, mime_type=part.mime_type or "application/octet-stream")
        return types.Part.from_text(text=part.text or "")

    @staticmethod
    def _response_parts(response: Any) -> List[Any]:
        if (
            not response.candidates
            or response.candidates[0].content is None
            or response.candidates[0].content.parts is None
        ):
            return []
        return list(response.candidates[0].content.parts)

    def _response_text(self, response: Any) -> str:
        return "".join(
            part.text for part in self._response_parts(response) if getattr(part, "text", None)
        )
