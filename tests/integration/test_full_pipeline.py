"""
Integration tests for the complete Axiom Studio pipeline workflow.
"""

import json
import pytest
from pathlib import Path
from unittest.mock import patch

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from conftest import STAIR_FAILURE, ScriptedService, audit_payload, make_png

from axiomstudio import cli
from axiomstudio.models import ImageResponse, RenderStatus
from axiomstudio.steps import step3_rationalizer, step4_audit_engine, step5_render_pipeline, step6_session

CONFIGS_DIR = Path(__file__).parent.parent.parent / "configs"


class TestFullPipelineIntegration:
    """Step CLIs chained through their output files."""

    @pytest.fixture
    def pipeline_setup(self, tmp_path, png_bytes):
        plan = tmp_path / "plan.png"
        plan.write_bytes(png_bytes)
        return {
            "tmp": tmp_path,
            "plan": plan,
            "library": str(CONFIGS_DIR / "carriage_house_library.yml"),
            "config": str(CONFIGS_DIR / "pipeline.yml"),
        }

    def test_rationalize_render_refine(self, pipeline_setup, sample_map_payload):
        setup = pipeline_setup
        map_dir = setup["tmp"] / "map"
        render_dir = setup["tmp"] / "renders"

        # Step 3: documents → building map
        step3_rationalizer.main(
            ["--docs", str(setup["plan"]), "--library", setup["library"], "--out", str(map_dir)],
            service=ScriptedService(structured=[sample_map_payload]),
        )
        building_map = json.loads((map_dir / "building_map.json").read_text())
        assert len(building_map["rooms"]) == 3
        assert len(json.loads((map_dir / "inventory.json").read_text())) == 2

        # Step 5: render room 201 using the map
        render_service = ScriptedService(
            structured=[audit_payload("FAIL", 33, failures=[STAIR_FAILURE])],
            images=[ImageResponse(image_bytes=make_png("white"), text="34/60")],
        )
        first = step5_render_pipeline.main(
            ["--kind", "interior_persp", "--viewpoint", "South", "--room", "201",
             "--map", str(map_dir / "building_map.json"),
             "--library", setup["library"], "--config", setup["config"], "--out", str(render_dir)],
            service=render_service,
        )
        assert first.status is RenderStatus.VIOLATION
        assert "Kitchenette 201" in render_service.image_calls[0]["parts"][0].text
        assert "looking South" in render_service.image_calls[0]["parts"][0].text
        assert "Cardinal Wall Axioms" in render_service.image_calls[0]["system"]

        # Step 5 refine: previous result file → pass 1
        refine_service = ScriptedService(
            structured=[audit_payload("PASS", 51)],
            images=[ImageResponse(image_bytes=make_png("gray"))],
        )
        refined = step5_render_pipeline.refine_main(
            ["--previous", str(render_dir / f"render_{first.id}.json"),
             "--library", setup["library"], "--out", str(render_dir)],
            service=refine_service,
        )
        assert refined.refinement_pass == 1
        assert refined.status is RenderStatus.VERIFIED
        assert refine_service.image_calls[0]["parts"][0].data == (render_dir / f"render_{first.id}.png").read_bytes()

        saved = json.loads((render_dir / f"render_{refined.id}.json").read_text())
        assert saved["status"] == "VERIFIED"
        assert saved["refinementPass"] == 1
        assert saved["request"]["targetRoomId"] == "201"

    def test_audit_cli(self, pipeline_setup):
        setup = pipeline_setup
        out = setup["tmp"] / "audit"
        report = step4_audit_engine.main(
            ["--image", str(setup["plan"]), "--out", str(out)],
            service=ScriptedService(structured=[audit_payload("PASS", 41)]),
        )
        data = json.loads((out / "audit_report.json").read_text())

        assert report.score.total == 41
        assert data["status"] == "VIOLATION"
        assert data["degraded"] is False

    def test_session_until_ceiling(self, pipeline_setup, png_bytes):
        setup = pipeline_setup
        out = setup["tmp"] / "session"
        failing = [audit_payload("FAIL", 20, failures=[STAIR_FAILURE]) for _ in range(4)]
        service = ScriptedService(structured=failing, images=[ImageResponse(image_bytes=png_bytes) for _ in range(4)])

        session = step6_session.main(["--out", str(out)], service=service)

        assert len(session.results) == 4
        assert len(list(out.glob("render_*.png"))) == 4
        newest = session.results[0]
        saved = json.loads((out / f"render_{newest.id}.json").read_text())
        assert saved["ceilingReached"] is True
        assert "Manual review required" in saved["auditText"]

    def test_session_verified_saves_each_render_once(self, pipeline_setup, png_bytes):
        out = pipeline_setup["tmp"] / "session"
        service = ScriptedService(
            structured=[audit_payload("FAIL", 20, failures=[STAIR_FAILURE]), audit_payload("PASS", 50)],
            images=[ImageResponse(image_bytes=png_bytes) for _ in range(2)],
        )
        with patch.object(step6_session, "save_result", wraps=step6_session.save_result) as saver:
            session = step6_session.main(["--out", str(out)], service=service)

        assert session.results[0].status is RenderStatus.VERIFIED
        assert saver.call_count == 2


class TestCommandDispatch:
    def test_library_subcommand(self, tmp_path, capsys):
        out = tmp_path / "lib.yml"
        cli.main(["library", "--toggle", "b7", "--out", str(out)])
        assert "07: Scoring Rubric" in capsys.readouterr().out
        assert out.exists()

    def test_prompt_subcommand(self, capsys):
        cli.main(["prompt", "--kind", "exterior_elev", "--viewpoint", "WEST",
                  "--library", str(CONFIGS_DIR / "carriage_house_library.yml")])
        printed = capsys.readouterr().out
        assert "=== SYSTEM FRAMING ===" in printed
        assert "WEST elevation" in printed

    def test_unknown_subcommand(self):
        with pytest.raises(SystemExit):
            cli.main(["paint"])
