#!/usr/bin/env python3
"""
step4_audit_engine.py – Step 4/6 Structured Conformity Audit
============================================================

Ask the text model to inspect one rendered image against the active axioms
and return a strict object:

    {narrative, verdict: PASS|FAIL, failures: [...], score: {...6 axes, total}}

Verdict rule:
- VERIFIED iff verdict == PASS and score.total >= pass_threshold (42/60)
- anything else, including an unparseable reply, is VIOLATION

A reply that does not parse (or does not conform) degrades to an empty
report: no verdict, zero score, no failures. Conformance that could not be
confirmed is never reported as verified.

Dependencies: Pillow (image media type detection)
"""

from __future__ import annotations

import json
import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import PipelineConfig, load_config
from ..errors import OutputContractError
from ..models import (
    AuditReport,
    FailureCategory,
    RenderStatus,
    SCORE_AXES,
    SCORE_MAX,
    Verdict,
)
from ..service import GenerativeService, PromptPart
from ..utils.image_utils import sniff_mime_type
from .step1_rule_library import RuleLibrary, default_library, load_library
from .step2_prompt_assembler import PromptAssembler

logger = logging.getLogger("axiomstudio.audit_engine")

# ---------------------------------------------------------------------------
# Response schema
# ---------------------------------------------------------------------------

AUDIT_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "narrative": {"type": "STRING"},
        "verdict": {"type": "STRING", "enum": [v.value for v in Verdict]},
        "failures": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "category": {"type": "STRING", "enum": [c.value for c in FailureCategory]},
                    "description": {"type": "STRING"},
                    "axiom_correction": {"type": "STRING"},
                },
                "required": ["category", "description", "axiom_correction"],
            },
        },
        "score": {
            "type": "OBJECT",
            "properties": {
                **{axis: {"type": "INTEGER"} for axis in SCORE_AXES},
                "total": {"type": "INTEGER"},
            },
            "required": [*SCORE_AXES, "total"],
        },
    },
    "required": ["narrative", "verdict", "failures", "score"],
}

# ---------------------------------------------------------------------------
# Verdict
# ---------------------------------------------------------------------------

def compute_status(report: AuditReport, pass_threshold: int = 42) -> RenderStatus:
    """Both an explicit PASS and a total at or above threshold are required."""
    if report.verdict is Verdict.PASS and report.score.total >= pass_threshold:
        return RenderStatus.VERIFIED
    return RenderStatus.VIOLATION


def parse_audit(data: Any) -> AuditReport:
    """Parse a structured audit reply; non-conforming input yields an empty report."""
    try:
        return AuditReport.from_dict(data)
    except OutputContractError as e:
        logger.warning(f"Audit reply did not conform to schema; treating as empty: {e}")
        return AuditReport(degraded=True)


# ---------------------------------------------------------------------------
# Audit Engine
# ---------------------------------------------------------------------------

class AuditEngine:
    def __init__(self, service: GenerativeService, config: Optional[PipelineConfig] = None):
        self.service = service
        self.config = config or PipelineConfig()
        self.assembler = PromptAssembler(self.config)

    def audit(
        self,
        image_bytes: bytes,
        system_framing: str,
        library: RuleLibrary,
        mime_type: Optional[str] = None,
    ) -> AuditReport:
        parts = [
            PromptPart.from_bytes(image_bytes, mime_type or sniff_mime_type(image_bytes)),
            PromptPart.from_text(self.assembler.audit_instruction(library)),
        ]
        try:
            data = self.service.generate_structured(system_framing, parts, AUDIT_SCHEMA)
        except OutputContractError as e:
            logger.warning(f"Audit reply was not parseable JSON; treating as empty: {e}")
            return AuditReport(degraded=True)

        report = parse_audit(data)
        logger.info(
            f"Audit verdict={report.verdict.value if report.verdict else 'NONE'} "
            f"total={report.score.total} failures={len(report.failures)}"
        )
        return report

    def status_for(self, report: AuditReport) -> RenderStatus:
        return compute_status(report, self.config.pass_threshold)


# ---------------------------------------------------------------------------
# CLI Interface
# ---------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None, service: Optional[GenerativeService] = None):
    parser = argparse.ArgumentParser(
        description="Step 4/6: Structured Conformity Audit - audit an existing render",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--image", required=True, help="Rendered image to audit")
    parser.add_argument("--library", help="Library YAML file (default: built-in starter library)")
    parser.add_argument("--config", help="Pipeline configuration YAML file")
    parser.add_argument("--out", default="./audit", help="Output directory")
    parser.add_argument("--api-key", help="Gemini API key (default: GEMINI_API_KEY / GOOGLE_API_KEY)")
    args = parser.parse_args(argv)

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    config = load_config(args.config)
    library = load_library(args.library) if args.library else default_library()
    if service is None:
        from ..utils.gemini_service import GeminiService
        service = GeminiService(config, api_key=args.api_key)

    engine = AuditEngine(service, config)
    framing = engine.assembler.system_framing(library)
    report = engine.audit(Path(args.image).read_bytes(), framing, library)
    status = engine.status_for(report)

    audit_report = {
        "image": str(args.image),
        "status": status.value,
        "verdict": report.verdict.value if report.verdict else None,
        "degraded": report.degraded,
        "score": report.score.to_dict(),
        "failures": [f.to_dict() for f in report.failures],
        "narrative": report.narrative,
    }
    with open(out_dir / "audit_report.json", "w", encoding="utf-8") as f:
        json.dump(audit_report, f, indent=2)

    print(f"✅ Audit complete! Output saved to: {args.out}")
    print(f"📊 Score: {report.score.total}/{SCORE_MAX}  Failures: {len(report.failures)}")
    if status is RenderStatus.VERIFIED:
        print("🟢 Render verified against active axioms")
    else:
        print("🟡 Render violates the active axioms")
    return report


if __name__ == "__main__":
    main()
