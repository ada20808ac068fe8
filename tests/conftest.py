"""
Pytest configuration and fixtures for the Axiom Studio render pipeline tests.
"""

import io
import sys
import pytest
from pathlib import Path
from PIL import Image
from typing import Any, Dict, List

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from axiomstudio.models import ImageResponse
from axiomstudio.steps.step1_rule_library import default_library


class ScriptedService:
    """Generative service fake: replays queued replies and records every call.

    Queued items that are exceptions are raised instead of returned.
    """

    def __init__(self, structured=None, images=None):
        self.structured: List[Any] = list(structured or [])
        self.images: List[Any] = list(images or [])
        self.structured_calls: List[Dict[str, Any]] = []
        self.image_calls: List[Dict[str, Any]] = []

    @property
    def call_count(self) -> int:
        return len(self.structured_calls) + len(self.image_calls)

    def generate_structured(self, system_framing, parts, output_schema):
        self.structured_calls.append({"system": system_framing, "parts": parts, "schema": output_schema})
        return self._next(self.structured, "structured")

    def generate_image(self, system_framing, parts, image_config):
        self.image_calls.append({"system": system_framing, "parts": parts, "image_config": image_config})
        return self._next(self.images, "image")

    @staticmethod
    def _next(queue, kind):
        if not queue:
            raise AssertionError(f"Unexpected {kind} call: no scripted reply left")
        reply = queue.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


def make_png(color: str = "white", size=(64, 36)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color=color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_jpeg(color: str = "gray", size=(64, 36)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color=color).save(buffer, format="JPEG")
    return buffer.getvalue()


def audit_payload(verdict: str = "PASS", total: int = 50, failures=None, narrative: str = "EAST: 3 garage doors.") -> Dict[str, Any]:
    """Structured audit reply whose axes add up to ``total``."""
    base, extra = divmod(total, 6)
    axes = [base + (1 if i < extra else 0) for i in range(6)]
    names = [
        "structural_accuracy",
        "spatial_geometry",
        "staircase_fidelity",
        "deck_accuracy",
        "south_wall_solidity",
        "render_quality",
    ]
    score = dict(zip(names, axes))
    score["total"] = total
    return {
        "narrative": narrative,
        "verdict": verdict,
        "failures": failures or [],
        "score": score,
    }


STAIR_FAILURE = {
    "category": "STAIRCASE",
    "description": "Stairs ascend east to west",
    "axiom_correction": "Stairs ascend WEST to EAST along the south wall",
}


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def jpeg_bytes():
    return make_jpeg()


@pytest.fixture
def image_response(png_bytes):
    return ImageResponse(image_bytes=png_bytes, text="Self score: 48/60")


@pytest.fixture
def library():
    return default_library()


@pytest.fixture
def sample_map_payload():
    """Rationalizer reply for a two-level building."""
    return {
        "map": {
            "totalLevels": 2,
            "globalFootprint": "30'-0\" x 34'-8\"",
            "exteriorFeatures": ["L-shaped deck S+W", "South stair W to E"],
            "rooms": [
                {
                    "id": "200",
                    "name": "Living Room 200",
                    "level": 2,
                    "dimensions": "16' x 20'",
                    "sqFt": 320,
                    "structuralFeatures": [
                        {"type": "Door", "location": "West", "details": "200A to deck"},
                    ],
                    "adjacencies": ["201", "208"],
                },
                {"id": "201", "name": "Kitchenette 201", "level": 2, "sqFt": 96},
                {"id": "G1", "name": "Garage Bay", "level": 1},
            ],
        },
        "inventory": [
            {"id": "m1", "room": "200", "category": "Finishes", "type": "T&G ceiling planks",
             "quantity": "320", "unit": "SF"},
            {"room": "201", "category": "Plumbing", "type": "Bar sink"},
        ],
    }
