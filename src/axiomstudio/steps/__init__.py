"""
Pipeline Steps Module
====================

Contains the 6 pipeline steps:
- step1_rule_library: Axioms and workflow templates, keyed lookup
- step2_prompt_assembler: System framing, template interpolation, refinement prompts
- step3_rationalizer: Building documents to structured BuildingMap + inventory
- step4_audit_engine: Structured conformity audit and verdict rule
- step5_render_pipeline: Generate → audit → verdict, bounded refinement
- step6_session: Busy flag, render log, automated refinement loop
"""

from . import step1_rule_library
from . import step2_prompt_assembler
from . import step3_rationalizer
from . import step4_audit_engine
from . import step5_render_pipeline
from . import step6_session

__all__ = [
    "step1_rule_library",
    "step2_prompt_assembler",
    "step3_rationalizer",
    "step4_audit_engine",
    "step5_render_pipeline",
    "step6_session",
]
