#!/usr/bin/env python3
"""
step6_session.py – Step 6/6 Render Session
==========================================

Caller-side owner of everything the pipeline itself deliberately does not
keep:

- the rule library being edited
- the single current BuildingMap (each rationalization replaces it)
- the append-only render log (newest first)
- one busy flag: no operation may start while another is in flight
- a credentials_required flag raised when an AuthorizationError passes by

render_until_verified() is the automated loop: render, then refine while the
result is a VIOLATION and the refinement ceiling has not been reached.

Dependencies: none beyond the package
"""

from __future__ import annotations

import argparse
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from ..config import PipelineConfig, load_config
from ..errors import AuthorizationError, PipelineBusyError
from ..models import BuildingMap, MaterialItem, RationalizationResult, RenderKind, RenderRequest, RenderResult, Room
from ..service import GenerativeService
from .step1_rule_library import RuleLibrary, default_library, load_library
from .step3_rationalizer import Document, SpatialRationalizer
from .step5_render_pipeline import RenderPipeline, print_result, resolve_room, save_result

logger = logging.getLogger("axiomstudio.session")


class RenderSession:
    """Single-user, single-inflight controller around the pipeline."""

    def __init__(
        self,
        service: GenerativeService,
        library: Optional[RuleLibrary] = None,
        config: Optional[PipelineConfig] = None,
        on_status: Optional[Callable[[str], None]] = None,
    ):
        self.config = config or PipelineConfig()
        self.library = library if library is not None else default_library()
        self.pipeline = RenderPipeline(service, self.config)
        self.rationalizer = SpatialRationalizer(service, self.config)
        self.on_status = on_status

        self.building_map: Optional[BuildingMap] = None
        self.inventory: List[MaterialItem] = []
        self.busy = False
        self.status_message = ""
        self.credentials_required = False
        self._results: List[RenderResult] = []

    @property
    def results(self) -> List[RenderResult]:
        """Render log, newest first. A copy; the log itself only grows."""
        return list(self._results)

    # ---- operations ----

    def rationalize(self, documents: List[Document]) -> RationalizationResult:
        with self._operation("PERFORMING CONFORMITY AUDIT..."):
            result = self.rationalizer.rationalize(documents, self.library)
        self.building_map = result.map
        self.inventory = list(result.inventory)
        return result

    def render(self, request: RenderRequest) -> RenderResult:
        with self._operation("INITIALIZING RENDER PIPELINE..."):
            result = self.pipeline.run(
                request, self.library, self.resolve_room(request.target_room_id), self._progress
            )
        return self._record(result)

    def refine(self, previous: RenderResult) -> RenderResult:
        with self._operation("STAGE 3: AUTO-REFINING RENDER..."):
            result = self.pipeline.refine(
                previous,
                previous.request,
                self.library,
                self.resolve_room(previous.request.target_room_id),
                self._progress,
            )
        if result.id != previous.id:
            return self._record(result)
        return result

    def render_until_verified(self, request: RenderRequest) -> RenderResult:
        result = self.render(request)
        while not result.is_verified and not result.ceiling_reached:
            logger.info(f"Render {result.id} in violation; starting refinement pass {result.refinement_pass + 1}")
            result = self.refine(result)
        return result

    def resolve_room(self, room_id: Optional[str]) -> Optional[Room]:
        return resolve_room(room_id, self.building_map)

    # ---- internal ----

    def _record(self, result: RenderResult) -> RenderResult:
        self._results.insert(0, result)
        return result

    def _progress(self, message: str) -> None:
        self.status_message = message
        if self.on_status:
            self.on_status(message)

    @contextmanager
    def _operation(self, label: str) -> Iterator[None]:
        if self.busy:
            raise PipelineBusyError(f"Another operation is in progress: {self.status_message}")
        self.busy = True
        self._progress(label)
        try:
            yield
        except AuthorizationError:
            logger.error("Credentials rejected; a new API key must be selected")
            self.credentials_required = True
            raise
        finally:
            self.busy = False


# ---------------------------------------------------------------------------
# CLI Interface
# ---------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None, service: Optional[GenerativeService] = None):
    parser = argparse.ArgumentParser(
        description="Step 6/6: Render Session - render with automated refinement until verified",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--kind", choices=[k.value for k in RenderKind], default=RenderKind.EXTERIOR_ISOMETRIC.value)
    parser.add_argument("--viewpoint", default="SE", help="Viewpoint substituted for {DIRECTION}")
    parser.add_argument("--room", help="Target room id")
    parser.add_argument("--docs", nargs="*", default=[], help="Rationalize these documents first")
    parser.add_argument("--library", help="Library YAML file (default: built-in starter library)")
    parser.add_argument("--config", help="Pipeline configuration YAML file")
    parser.add_argument("--out", default="./session", help="Output directory")
    parser.add_argument("--api-key", help="Gemini API key (default: GEMINI_API_KEY / GOOGLE_API_KEY)")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    library = load_library(args.library) if args.library else default_library()
    if service is None:
        from ..utils.gemini_service import GeminiService
        service = GeminiService(config, api_key=args.api_key)

    session = RenderSession(service, library, config, on_status=logger.info)
    if args.docs:
        session.rationalize([Document.from_path(p) for p in args.docs])

    request = RenderRequest(kind=RenderKind(args.kind), viewpoint=args.viewpoint, target_room_id=args.room)
    final = session.render_until_verified(request)

    out_dir = Path(args.out)
    saved = {result.id: save_result(result, out_dir) for result in reversed(session.results)}
    # ceiling copies share their id with the last recorded pass
    if final.ceiling_reached or final.id not in saved:
        saved[final.id] = save_result(final, out_dir)
    image_path, _ = saved[final.id]
    print_result(final, image_path)
    print(f"📂 {len(session.results)} render(s) in {out_dir}")
    return session


if __name__ == "__main__":
    main()
