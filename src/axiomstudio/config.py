"""
config.py – Pipeline configuration
==================================

Defaults live on the ``PipelineConfig`` dataclass; an optional YAML file
(see ``configs/pipeline.yml``) overrides any subset of them.

API key lookup order: explicit argument, GEMINI_API_KEY, GOOGLE_API_KEY.
"""

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Optional, Union

import yaml

from .errors import AuthorizationError
from .models import RenderKind

logger = logging.getLogger("axiomstudio.config")


def _default_style_directives() -> Dict[str, str]:
    return {
        RenderKind.EXTERIOR_ISOMETRIC.value: (
            "STYLE: white-clay massing model, true isometric projection, soft neutral daylight, "
            "no entourage, no landscaping beyond a flat ground plane."
        ),
        RenderKind.EXTERIOR_ELEVATION.value: (
            "STYLE: orthographic flat elevation, zero perspective distortion, "
            "architectural line-weight drafting on white."
        ),
        RenderKind.INTERIOR_PLAN.value: (
            "STYLE: top-down orthographic floor plan, labelled rooms, wall poché, "
            "door swings and window breaks drawn to scale."
        ),
        RenderKind.INTERIOR_PERSPECTIVE.value: (
            "STYLE: photoreal interior perspective, eye-level camera at 5'-0\", "
            "natural light through the documented openings only."
        ),
    }


@dataclass
class PipelineConfig:
    """Configuration for the render pipeline and its service adapter."""
    text_model: str = "gemini-3-pro-preview"
    image_model: str = "gemini-3-pro-image-preview"
    aspect_ratio: str = "16:9"
    image_size: str = "1K"

    # Verdict rule: 70% of the 60-point rubric
    pass_threshold: int = 42
    max_refinement_passes: int = 3

    direction_token: str = "{DIRECTION}"
    room_name_token: str = "{ROOM_NAME}"
    room_fallback: str = "Target Space"

    fallback_system_instruction: str = (
        "You are a precise architectural visualization engine. Adhere to all cardinal axioms."
    )
    fallback_audit_instruction: str = (
        "Audit this image against the cardinal wall axioms. Be extremely critical. "
        "List every discrepancy."
    )
    fallback_rationalize_instruction: str = "Perform a high-fidelity spatial audit. Return JSON."

    style_directives: Dict[str, str] = field(default_factory=_default_style_directives)

    def style_directive(self, kind: RenderKind) -> str:
        return self.style_directives.get(kind.value, "")

    @property
    def image_config(self) -> Dict[str, str]:
        return {"aspect_ratio": self.aspect_ratio, "image_size": self.image_size}


def load_config(path: Optional[Union[str, Path]] = None) -> PipelineConfig:
    """Load a PipelineConfig, overlaying YAML values on the defaults."""
    config = PipelineConfig()
    if path is None:
        return config

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config root must be a mapping: {path}")

    known = {f.name for f in fields(PipelineConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config keys in {path}: {', '.join(unknown)}")

    for key, value in data.items():
        if key == "style_directives":
            merged = dict(config.style_directives)
            merged.update(value or {})
            value = merged
        setattr(config, key, value)

    logger.info(f"Loaded pipeline config from {path}")
    return config


def resolve_api_key(api_key: Optional[str] = None) -> str:
    key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    if not key:
        raise AuthorizationError("No GEMINI_API_KEY or GOOGLE_API_KEY found; select an API key first.")
    return key
