"""
Axiom Studio Architectural Render Pipeline (Steps 1–6)
======================================================

Generates architectural views of a documented building with a generative
image model, audits every render against a curated set of axioms, and
drives bounded image-to-image refinement until the render conforms.

Core Pipeline:
1. Rule Library (axioms + workflow templates)
2. Prompt Assembler
3. Spatial Rationalizer (documents → building map)
4. Structured Conformity Audit
5. Render Pipeline + Refinement
6. Render Session

Version: 0.3.0
"""

__version__ = "0.3.0"
__author__ = "Axiom Studio"

from .steps import (
    step1_rule_library,
    step2_prompt_assembler,
    step3_rationalizer,
    step4_audit_engine,
    step5_render_pipeline,
    step6_session,
)

__all__ = [
    "step1_rule_library",
    "step2_prompt_assembler",
    "step3_rationalizer",
    "step4_audit_engine",
    "step5_render_pipeline",
    "step6_session",
]
