#!/usr/bin/env python3
"""
step5_render_pipeline.py – Step 5/6 Render Pipeline + Refinement
================================================================

One linear pass per call:

    IDLE → GENERATING → AUDITING → VERIFIED | VIOLATION

run():
1. Generate: view template + style directive + scoring rubric → one image
   (+ optional self-score text). No image is fatal (MissingPayloadError).
2. Audit: structured audit of that image with the same system framing.
3. Emit a new RenderResult, refinement_pass = 0.

refine():
- previous.refinement_pass >= max passes: no service call, return a copy
  of previous marked VIOLATION + ceiling_reached, with a manual-review note
- otherwise: itemized failures + the previous image as reference
  (image-to-image correction), re-audit, new RenderResult with a fresh id
  and refinement_pass = previous + 1. previous is never mutated.

Nothing is retried here; every failure propagates to the caller.

Outputs (CLI):
- render_<id>.png
- render_<id>.json

Dependencies: Pillow (image bytes)
"""

from __future__ import annotations

import json
import time
import argparse
import logging
from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ..config import PipelineConfig, load_config
from ..errors import MissingPayloadError
from ..models import (
    AuditReport,
    BuildingMap,
    ImageResponse,
    RenderKind,
    RenderRequest,
    RenderResult,
    RenderStatus,
    Room,
    SCORE_MAX,
    new_id,
)
from ..service import GenerativeService, PromptPart
from ..utils.image_utils import save_image, sniff_mime_type
from .step1_rule_library import DEFAULT_ROOMS, RuleLibrary, default_library, load_library
from .step2_prompt_assembler import PromptAssembler
from .step4_audit_engine import AuditEngine

logger = logging.getLogger("axiomstudio.render_pipeline")

ProgressCallback = Callable[[str], None]

STAGE_GENERATE = "STAGE 1: GENERATING ARCHITECTURAL GEOMETRY..."
STAGE_AUDIT = "STAGE 2: RUNNING CONFORMITY AUDIT ON RENDER..."
STAGE_REFINE = "STAGE 3: AUTO-REFINING RENDER..."
STAGE_REAUDIT = "STAGE 4: RE-AUDITING REFINED RENDER..."

CEILING_NOTE = (
    "REFINEMENT CEILING REACHED: {passes} automated refinement passes exhausted. "
    "Manual review required."
)


class PipelineState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    AUDITING = "auditing"
    VERIFIED = "verified"
    VIOLATION = "violation"


# ---------------------------------------------------------------------------
# Render Pipeline
# ---------------------------------------------------------------------------

class RenderPipeline:
    """Generate → audit → verdict, plus bounded image-to-image refinement.

    Holds only collaborators and configuration; every call builds its own
    result, so separate requests never share state.
    """

    def __init__(self, service: GenerativeService, config: Optional[PipelineConfig] = None):
        self.service = service
        self.config = config or PipelineConfig()
        self.assembler = PromptAssembler(self.config)
        self.auditor = AuditEngine(service, self.config)

    def run(
        self,
        request: RenderRequest,
        library: RuleLibrary,
        room: Optional[Room] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RenderResult:
        framing = self.assembler.system_framing(library)
        prompt = self.assembler.generation_prompt(library, request, room)

        state = self._advance(PipelineState.IDLE, PipelineState.GENERATING, on_progress, STAGE_GENERATE)
        image = self._require_image(
            self.service.generate_image(framing, [PromptPart.from_text(prompt)], self.config.image_config),
            stage="generate",
        )

        state = self._advance(state, PipelineState.AUDITING, on_progress, STAGE_AUDIT)
        report = self.auditor.audit(image.image_bytes, framing, library, mime_type=image.mime_type)

        return self._emit(state, request, image, report, refinement_pass=0)

    def refine(
        self,
        previous: RenderResult,
        request: RenderRequest,
        library: RuleLibrary,
        room: Optional[Room] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RenderResult:
        max_passes = self.config.max_refinement_passes
        if previous.refinement_pass >= max_passes:
            logger.warning(
                f"Render {previous.id} already at pass {previous.refinement_pass}; refinement ceiling reached"
            )
            note = CEILING_NOTE.format(passes=max_passes)
            return replace(
                previous,
                status=RenderStatus.VIOLATION,
                ceiling_reached=True,
                audit_text=f"{previous.audit_text}\n\n{note}" if previous.audit_text else note,
            )

        framing = self.assembler.system_framing(library)
        prompt = self.assembler.refinement_prompt(previous, library, request, room)
        parts = [
            PromptPart.from_bytes(previous.image_bytes, previous.image_mime_type),
            PromptPart.from_text(prompt),
        ]

        state = self._advance(PipelineState.IDLE, PipelineState.GENERATING, on_progress, STAGE_REFINE)
        image = self._require_image(
            self.service.generate_image(framing, parts, self.config.image_config),
            stage="refine",
        )

        state = self._advance(state, PipelineState.AUDITING, on_progress, STAGE_REAUDIT)
        report = self.auditor.audit(image.image_bytes, framing, library, mime_type=image.mime_type)

        return self._emit(state, request, image, report, refinement_pass=previous.refinement_pass + 1)

    # ---- internal ----

    @staticmethod
    def _advance(
        current: PipelineState,
        target: PipelineState,
        on_progress: Optional[ProgressCallback],
        label: Optional[str] = None,
    ) -> PipelineState:
        logger.info(f"Pipeline {current.value} → {target.value}")
        if on_progress and label:
            on_progress(label)
        return target

    @staticmethod
    def _require_image(response: ImageResponse, stage: str) -> ImageResponse:
        if not response.image_bytes:
            logger.error(f"{stage} stage returned no image payload")
            raise MissingPayloadError(stage)
        mime_type = sniff_mime_type(response.image_bytes, default=response.mime_type)
        return replace(response, mime_type=mime_type)

    def _emit(
        self,
        state: PipelineState,
        request: RenderRequest,
        image: ImageResponse,
        report: AuditReport,
        refinement_pass: int,
    ) -> RenderResult:
        status = self.auditor.status_for(report)
        final = PipelineState.VERIFIED if status is RenderStatus.VERIFIED else PipelineState.VIOLATION
        self._advance(state, final, None)
        result = RenderResult(
            id=new_id(),
            image_bytes=image.image_bytes,
            self_score_text=image.text,
            audit_text=report.narrative,
            audit_failures=list(report.failures),
            audit_score=report.score,
            status=status,
            request=request,
            timestamp=time.time(),
            refinement_pass=refinement_pass,
            is_validated=True,
            verdict=report.verdict,
            image_mime_type=image.mime_type,
        )
        logger.info(
            f"Render {result.id} pass={refinement_pass} status={status.value} "
            f"score={report.score.total}"
        )
        return result


# ---------------------------------------------------------------------------
# Room resolution
# ---------------------------------------------------------------------------

def resolve_room(room_id: Optional[str], building_map: Optional[BuildingMap] = None) -> Optional[Room]:
    """Room from the current map, else from the built-in room catalog."""
    if not room_id:
        return None
    if building_map is not None:
        return building_map.find_room(room_id)
    for raw in DEFAULT_ROOMS:
        if raw["id"] == room_id:
            return Room(id=raw["id"], name=raw["name"], level=raw["level"])
    return None


# ---------------------------------------------------------------------------
# Result files
# ---------------------------------------------------------------------------

def save_result(result: RenderResult, out_dir: Path) -> Tuple[Path, Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    image_path = save_image(result.image_bytes, out_dir / f"render_{result.id}.png")
    data = result.to_dict()
    data["imagePath"] = image_path.name
    data["imageMimeType"] = "image/png"
    json_path = out_dir / f"render_{result.id}.json"
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    return image_path, json_path


def load_result(json_path: Path) -> RenderResult:
    json_path = Path(json_path)
    with open(json_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    image_path = json_path.parent / data.get("imagePath", f"render_{data['id']}.png")
    image_bytes = image_path.read_bytes()
    data["imageMimeType"] = sniff_mime_type(image_bytes, default=data.get("imageMimeType", "image/png"))
    return RenderResult.from_dict(data, image_bytes)


def load_building_map(path: Optional[str]) -> Optional[BuildingMap]:
    if not path:
        return None
    with open(path, "r", encoding="utf-8") as f:
        return BuildingMap.from_dict(json.load(f))


def print_result(result: RenderResult, image_path: Path) -> None:
    print(f"✅ Render saved: {image_path}")
    print(f"📊 Score: {result.audit_score.total}/{SCORE_MAX}  Pass: {result.refinement_pass}")
    for failure in result.audit_failures:
        print(f"   ✗ {failure.category.value}: {failure.description}")
    if result.is_verified:
        print("🟢 VERIFIED against active axioms")
    elif result.ceiling_reached:
        print("🔴 VIOLATION - refinement ceiling reached, manual review required")
    else:
        print("🟡 VIOLATION - run refinement to correct the listed failures")


# ---------------------------------------------------------------------------
# CLI Interface
# ---------------------------------------------------------------------------

def _common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--library", help="Library YAML file (default: built-in starter library)")
    parser.add_argument("--config", help="Pipeline configuration YAML file")
    parser.add_argument("--map", help="building_map.json from the rationalizer (room lookup)")
    parser.add_argument("--out", default="./renders", help="Output directory")
    parser.add_argument("--api-key", help="Gemini API key (default: GEMINI_API_KEY / GOOGLE_API_KEY)")


def main(argv: Optional[List[str]] = None, service: Optional[GenerativeService] = None):
    parser = argparse.ArgumentParser(
        description="Step 5/6: Render Pipeline - generate and audit one view",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--kind", choices=[k.value for k in RenderKind], default=RenderKind.EXTERIOR_ISOMETRIC.value)
    parser.add_argument("--viewpoint", default="SE", help="Viewpoint substituted for {DIRECTION}")
    parser.add_argument("--room", help="Target room id")
    _common_args(parser)
    args = parser.parse_args(argv)

    config = load_config(args.config)
    library = load_library(args.library) if args.library else default_library()
    if service is None:
        from ..utils.gemini_service import GeminiService
        service = GeminiService(config, api_key=args.api_key)

    request = RenderRequest(kind=RenderKind(args.kind), viewpoint=args.viewpoint, target_room_id=args.room)
    room = resolve_room(args.room, load_building_map(args.map))

    try:
        result = RenderPipeline(service, config).run(request, library, room, on_progress=logger.info)
    except Exception as e:
        logger.error(f"Pipeline error: {e}")
        raise

    image_path, _ = save_result(result, Path(args.out))
    print_result(result, image_path)
    return result


def refine_main(argv: Optional[List[str]] = None, service: Optional[GenerativeService] = None):
    parser = argparse.ArgumentParser(
        description="Step 5/6: Render Refinement - correct a previous render's audit failures",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--previous", required=True, help="render_<id>.json of the render to refine")
    _common_args(parser)
    args = parser.parse_args(argv)

    config = load_config(args.config)
    library = load_library(args.library) if args.library else default_library()
    if service is None:
        from ..utils.gemini_service import GeminiService
        service = GeminiService(config, api_key=args.api_key)

    previous = load_result(Path(args.previous))
    room = resolve_room(previous.request.target_room_id, load_building_map(args.map))

    try:
        result = RenderPipeline(service, config).refine(
            previous, previous.request, library, room, on_progress=logger.info
        )
    except Exception as e:
        logger.error(f"Refinement error: {e}")
        raise

    image_path, _ = save_result(result, Path(args.out))
    print_result(result, image_path)
    return result


if __name__ == "__main__":
    main()
