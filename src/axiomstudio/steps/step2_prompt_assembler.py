#!/usr/bin/env python3
"""
step2_prompt_assembler.py – Step 2/6 Prompt Assembler
=====================================================

Turn the rule library + a render request into the text actually sent to the
generative service.

Pieces:
1. System framing: every active axiom as "## title\\ncontent", joined by a
   visible "---" separator, in library order (generic fallback when none)
2. Workflow body: the template keyed to the purpose, with {DIRECTION} and
   {ROOM_NAME} substituted verbatim (template text is trusted input)
3. Generation prompt: workflow body + per-kind style directive + rubric
4. Audit instruction: audit template + fixed structured-audit protocol
5. Refinement prompt: itemized prior failures + preservation rule

Dependencies: none beyond the package
"""

from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from ..config import PipelineConfig, load_config
from ..models import FailureCategory, RenderKind, RenderRequest, RenderResult, Room, SCORE_AXES, SCORE_MAX, WorkflowKey
from .step1_rule_library import RuleLibrary, default_library, load_library

logger = logging.getLogger("axiomstudio.prompt_assembler")

AXIOM_SEPARATOR = "\n\n---\n\n"

STRUCTURED_AUDIT_PROTOCOL = f"""STRUCTURED AUDIT PROTOCOL:
1. Enumerate every wall (NORTH, SOUTH, EAST, WEST) and list every visible element on it: doors, garage doors, windows, stairs, deck, railing, roof edge and gable.
2. Compare each enumerated element against the cardinal axioms in the system instruction.
3. Report every discrepancy as a failure with a category ({", ".join(c.value for c in FailureCategory)}), a description of what the render shows, and the axiom_correction that fixes it.
4. Score each axis as an integer 0-10: {", ".join(SCORE_AXES)}. total is their sum (max {SCORE_MAX}).
5. verdict is PASS only when no axiom is violated; otherwise FAIL.
Return only JSON matching the response schema. Put the wall-by-wall enumeration in narrative."""

PRESERVATION_RULE = (
    "Elements not mentioned in the failure list must remain unchanged: keep the camera, framing, "
    "materials, lighting and every wall, opening and roof plane that was not flagged exactly as in "
    "the reference image."
)


class PromptAssembler:
    """Builds system framing and user prompts from a RuleLibrary."""

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()

    def system_framing(self, library: RuleLibrary) -> str:
        sections = [f"## {item.title}\n{item.content}" for item in library.active_axioms()]
        if not sections:
            logger.info("No active axioms; using fallback system instruction")
            return self.config.fallback_system_instruction
        return AXIOM_SEPARATOR.join(sections)

    def workflow_body(self, library: RuleLibrary, key: WorkflowKey) -> str:
        item = library.workflow(key)
        if item is None:
            logger.warning(f"No active workflow template for '{key.label}'")
            return ""
        return item.content

    def interpolate(self, template: str, viewpoint: str, room_name: Optional[str] = None) -> str:
        return (
            template
            .replace(self.config.direction_token, viewpoint)
            .replace(self.config.room_name_token, room_name or self.config.room_fallback)
        )

    def view_prompt(self, library: RuleLibrary, request: RenderRequest, room: Optional[Room] = None) -> str:
        """Interpolated workflow body for the request's render kind, plus its style directive."""
        body = self.interpolate(
            self.workflow_body(library, request.kind.workflow_key),
            request.viewpoint,
            room.name if room else None,
        )
        style = self.config.style_directive(request.kind)
        return "\n\n".join(p for p in (body, style) if p)

    def generation_prompt(self, library: RuleLibrary, request: RenderRequest, room: Optional[Room] = None) -> str:
        rubric = self.workflow_body(library, WorkflowKey.SCORING_RUBRIC)
        return f"{self.view_prompt(library, request, room)}{AXIOM_SEPARATOR}{rubric}"

    def audit_instruction(self, library: RuleLibrary) -> str:
        audit = self.workflow_body(library, WorkflowKey.AXIOM_AUDIT) or self.config.fallback_audit_instruction
        return f"{audit}\n\n{STRUCTURED_AUDIT_PROTOCOL}"

    def rationalize_instruction(self, library: RuleLibrary) -> str:
        return (
            self.workflow_body(library, WorkflowKey.AXIOM_AUDIT)
            or self.config.fallback_rationalize_instruction
        )

    def refinement_prompt(
        self,
        previous: RenderResult,
        library: RuleLibrary,
        request: Optional[RenderRequest] = None,
        room: Optional[Room] = None,
    ) -> str:
        request = request or previous.request
        next_pass = previous.refinement_pass + 1
        lines: List[str] = [
            f"REFINEMENT PASS {next_pass} OF {self.config.max_refinement_passes}",
            "The attached image is the previous render. Edit it to correct ONLY the audit failures "
            "listed below; do not regenerate the scene from scratch.",
            "",
            "AUDIT FAILURES:",
        ]
        if previous.audit_failures:
            lines.extend(
                f"- {f.category.value}: {f.description} (fix: {f.axiom_correction})"
                for f in previous.audit_failures
            )
        else:
            lines.append(
                "- (no itemized failures were recorded) Re-verify every cardinal axiom and correct any deviation."
            )
        lines += ["", PRESERVATION_RULE, "", "ORIGINAL VIEW:", self.view_prompt(library, request, room)]
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# CLI Interface
# ---------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="Step 2/6: Prompt Assembler - preview the framing and prompt for a render",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--library", help="Library YAML file (default: built-in starter library)")
    parser.add_argument("--config", help="Pipeline configuration YAML file")
    parser.add_argument("--kind", choices=[k.value for k in RenderKind], default=RenderKind.EXTERIOR_ISOMETRIC.value)
    parser.add_argument("--viewpoint", default="SE", help="Viewpoint substituted for {DIRECTION}")
    parser.add_argument("--room-name", help="Room name substituted for {ROOM_NAME}")
    args = parser.parse_args(argv)

    library = load_library(args.library) if args.library else default_library()
    assembler = PromptAssembler(load_config(args.config))
    request = RenderRequest(kind=RenderKind(args.kind), viewpoint=args.viewpoint)
    room = Room(id="cli", name=args.room_name, level=0) if args.room_name else None

    print("=== SYSTEM FRAMING ===")
    print(assembler.system_framing(library))
    print("\n=== GENERATION PROMPT ===")
    print(assembler.generation_prompt(library, request, room))


if __name__ == "__main__":
    main()
