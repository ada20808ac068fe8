"""
Unit tests for Step 6: Render Session.
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from conftest import STAIR_FAILURE, ScriptedService, audit_payload

from axiomstudio.config import PipelineConfig
from axiomstudio.errors import AuthorizationError, OutputContractError, PipelineBusyError
from axiomstudio.models import ImageResponse, RenderKind, RenderRequest, RenderStatus
from axiomstudio.steps.step3_rationalizer import Document
from axiomstudio.steps.step6_session import RenderSession

REQUEST = RenderRequest(RenderKind.INTERIOR_PERSPECTIVE, "North", "201")


def _images(png_bytes, count):
    return [ImageResponse(image_bytes=png_bytes) for _ in range(count)]


class TestRenderSession:
    def test_render_records_newest_first(self, png_bytes, library):
        service = ScriptedService(
            structured=[audit_payload("PASS", 50), audit_payload("FAIL", 20)],
            images=_images(png_bytes, 2),
        )
        session = RenderSession(service, library)
        first = session.render(REQUEST)
        second = session.render(REQUEST)

        assert [r.id for r in session.results] == [second.id, first.id]
        assert session.busy is False

    def test_results_is_copy(self, png_bytes, library):
        service = ScriptedService(structured=[audit_payload("PASS", 50)], images=_images(png_bytes, 1))
        session = RenderSession(service, library)
        session.render(REQUEST)
        session.results.clear()
        assert len(session.results) == 1

    def test_busy_rejects_second_operation(self, png_bytes, library):
        session = RenderSession(ScriptedService(), library)
        session.busy = True
        with pytest.raises(PipelineBusyError):
            session.render(REQUEST)

    def test_busy_cleared_after_failure(self, library):
        service = ScriptedService(images=[ImageResponse(image_bytes=None)])
        session = RenderSession(service, library)
        with pytest.raises(Exception):
            session.render(REQUEST)
        assert session.busy is False
        assert session.results == []

    def test_status_messages(self, png_bytes, library):
        seen = []
        service = ScriptedService(structured=[audit_payload("PASS", 50)], images=_images(png_bytes, 1))
        RenderSession(service, library, on_status=seen.append).render(REQUEST)
        assert seen[0] == "INITIALIZING RENDER PIPELINE..."
        assert seen[-1].startswith("STAGE 2")

    def test_authorization_sets_credentials_flag(self, library):
        service = ScriptedService(images=[AuthorizationError("Requested entity was not found.")])
        session = RenderSession(service, library)
        with pytest.raises(AuthorizationError):
            session.render(REQUEST)
        assert session.credentials_required is True
        assert session.busy is False

    def test_room_name_from_map(self, png_bytes, library, sample_map_payload):
        service = ScriptedService(
            structured=[sample_map_payload, audit_payload("PASS", 50)],
            images=_images(png_bytes, 1),
        )
        session = RenderSession(service, library)
        session.rationalize([Document(png_bytes, "image/png")])
        session.render(REQUEST)

        assert session.building_map.total_levels == 2
        assert len(session.inventory) == 2
        assert "Kitchenette 201" in service.image_calls[0]["parts"][0].text

    def test_rationalize_failure_keeps_previous_map(self, png_bytes, library, sample_map_payload):
        service = ScriptedService(structured=[sample_map_payload, OutputContractError("x", "bad", "invalid_json")])
        session = RenderSession(service, library)
        session.rationalize([Document(png_bytes, "image/png")])
        with pytest.raises(OutputContractError):
            session.rationalize([Document(png_bytes, "image/png")])
        assert len(session.building_map.rooms) == 3


class TestRenderUntilVerified:
    def test_stops_when_verified(self, png_bytes, library):
        service = ScriptedService(
            structured=[audit_payload("FAIL", 30, failures=[STAIR_FAILURE]), audit_payload("PASS", 45)],
            images=_images(png_bytes, 2),
        )
        session = RenderSession(service, library)
        final = session.render_until_verified(REQUEST)

        assert final.status is RenderStatus.VERIFIED
        assert final.refinement_pass == 1
        assert len(session.results) == 2

    def test_stops_at_ceiling(self, png_bytes, library):
        failing = [audit_payload("FAIL", 30, failures=[STAIR_FAILURE]) for _ in range(4)]
        service = ScriptedService(structured=failing, images=_images(png_bytes, 4))
        session = RenderSession(service, library, PipelineConfig(max_refinement_passes=3))
        final = session.render_until_verified(REQUEST)

        assert service.call_count == 8
        assert final.ceiling_reached is True
        assert final.refinement_pass == 3
        assert [r.refinement_pass for r in session.results] == [3, 2, 1, 0]
