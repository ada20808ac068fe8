#!/usr/bin/env python3
"""
CLI entry point for the Axiom Studio render pipeline.

Provides command-line interfaces for all pipeline steps.
"""

import argparse
import logging
import sys

from axiomstudio.steps.step1_rule_library import main as step1_main
from axiomstudio.steps.step2_prompt_assembler import main as step2_main
from axiomstudio.steps.step3_rationalizer import main as step3_main
from axiomstudio.steps.step4_audit_engine import main as step4_main
from axiomstudio.steps.step5_render_pipeline import main as step5_main
from axiomstudio.steps.step5_render_pipeline import refine_main as step5_refine_main
from axiomstudio.steps.step6_session import main as step6_main


def _setup_logging(argv):
    """Strip --debug from argv and configure logging the same way for every entry point."""
    argv = list(sys.argv[1:] if argv is None else argv)
    debug = "--debug" in argv
    if debug:
        argv.remove("--debug")
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    return argv


def axiomstudio_library(argv=None):
    """CLI entry point for Step 1: Rule Library."""
    step1_main(_setup_logging(argv))


def axiomstudio_prompt(argv=None):
    """CLI entry point for Step 2: Prompt preview."""
    step2_main(_setup_logging(argv))


def axiomstudio_rationalize(argv=None):
    """CLI entry point for Step 3: Spatial Rationalizer."""
    step3_main(_setup_logging(argv))


def axiomstudio_audit(argv=None):
    """CLI entry point for Step 4: Conformity Audit of an existing image."""
    step4_main(_setup_logging(argv))


def axiomstudio_render(argv=None):
    """CLI entry point for Step 5: Generate + audit one view."""
    step5_main(_setup_logging(argv))


def axiomstudio_refine(argv=None):
    """CLI entry point for Step 5: Refine a previous render."""
    step5_refine_main(_setup_logging(argv))


def axiomstudio_pipeline(argv=None):
    """Run rationalize (optional) → render → automated refinement."""
    step6_main(_setup_logging(argv))


COMMANDS = {
    "library": axiomstudio_library,
    "prompt": axiomstudio_prompt,
    "rationalize": axiomstudio_rationalize,
    "audit": axiomstudio_audit,
    "render": axiomstudio_render,
    "refine": axiomstudio_refine,
    "pipeline": axiomstudio_pipeline,
}


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Axiom Studio architectural render pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Build the building map from plans
    axiomstudio rationalize --docs plans.pdf site.jpg --out ./map

    # Render and audit an isometric view from the south-east
    axiomstudio render --kind exterior_iso --viewpoint SE --map ./map/building_map.json

    # Correct a violating render
    axiomstudio refine --previous ./renders/render_ab12cd34e.json

    # Render with automated refinement until verified or the ceiling is hit
    axiomstudio pipeline --kind interior_persp --room 201 --library configs/carriage_house_library.yml
        """
    )
    parser.add_argument("command", choices=sorted(COMMANDS))
    parser.add_argument("args", nargs=argparse.REMAINDER)
    parsed = parser.parse_args(argv)
    COMMANDS[parsed.command](parsed.args)


if __name__ == "__main__":
    main()
