"""
Unit tests for Step 1: Rule Library.
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from axiomstudio.errors import WorkflowLookupError
from axiomstudio.models import RuleCategory, WorkflowKey
from axiomstudio.steps.step1_rule_library import (
    RuleItem,
    RuleLibrary,
    default_library,
    infer_workflow_key,
    load_library,
    main,
    save_library,
)

CONFIGS_DIR = Path(__file__).parent.parent.parent / "configs"


class TestWorkflowKeyInference:
    """Keys come from titles carrying exactly one workflow label."""

    def test_numbered_title(self):
        assert infer_workflow_key("02: Axiom Audit") is WorkflowKey.AXIOM_AUDIT

    def test_case_insensitive(self):
        assert infer_workflow_key("my SCORING RUBRIC v2") is WorkflowKey.SCORING_RUBRIC

    def test_no_label(self):
        assert infer_workflow_key("Random Notes") is None

    def test_two_labels_stay_unkeyed(self):
        assert infer_workflow_key("Axiom Audit + Scoring Rubric") is None


class TestRuleLibrary:
    """Test RuleLibrary editing operations."""

    def test_default_library_keys(self, library):
        for key in WorkflowKey:
            assert library.workflow(key) is not None, key
        assert [i.id for i in library.active_axioms()] == ["a1", "a2"]

    def test_add_defaults(self):
        lib = RuleLibrary()
        axiom = lib.add(RuleCategory.CONSTITUTION)
        workflow = lib.add(RuleCategory.WORKFLOW)

        assert axiom.title == "New Axiom"
        assert workflow.title == "New Workflow"
        assert axiom.content == "# Content here"
        assert workflow.workflow_key is None
        assert len(lib) == 2

    def test_add_infers_key(self):
        lib = RuleLibrary()
        item = lib.add(RuleCategory.WORKFLOW, title="09: Exterior Massing (night)")
        assert item.workflow_key is WorkflowKey.EXTERIOR_MASSING
        assert lib.workflow(WorkflowKey.EXTERIOR_MASSING) == item

    def test_explicit_key_wins_over_title(self):
        lib = RuleLibrary()
        item = lib.add(RuleCategory.WORKFLOW, title="Axiom Audit notes", workflow_key=WorkflowKey.INTERIOR_ROOM)
        assert item.workflow_key is WorkflowKey.INTERIOR_ROOM
        assert lib.workflow(WorkflowKey.AXIOM_AUDIT) is None

    def test_axioms_never_keyed(self):
        lib = RuleLibrary()
        item = lib.add(RuleCategory.CONSTITUTION, title="Axiom Audit", workflow_key=WorkflowKey.AXIOM_AUDIT)
        assert item.workflow_key is None

    def test_duplicate_id_rejected(self, library):
        with pytest.raises(ValueError):
            library.add(RuleCategory.CONSTITUTION, item_id="a1")

    def test_update_keeps_category_and_key(self, library):
        updated = library.update("b2", title="Renamed", content="Check everything.")
        assert updated.category is RuleCategory.WORKFLOW
        assert updated.workflow_key is WorkflowKey.AXIOM_AUDIT
        assert library.get("b2").content == "Check everything."

    def test_toggle_and_inactive_lookup(self, library):
        library.toggle("b2")
        assert library.get("b2").is_active is False
        assert library.workflow(WorkflowKey.AXIOM_AUDIT) is None

        library.toggle("b2")
        assert library.workflow(WorkflowKey.AXIOM_AUDIT).id == "b2"

    def test_inactive_axiom_excluded(self, library):
        library.set_active("a2", False)
        assert [i.id for i in library.active_axioms()] == ["a1"]

    def test_remove(self, library):
        removed = library.remove("a1")
        assert removed.id == "a1"
        with pytest.raises(KeyError):
            library.get("a1")

    def test_rename_keys_new_template(self, library):
        library.remove("b2")
        item = library.add(RuleCategory.WORKFLOW)
        assert item.workflow_key is None

        library.update(item.id, title="02: Axiom Audit", content="CUSTOM AUDIT")
        assert library.workflow(WorkflowKey.AXIOM_AUDIT).content == "CUSTOM AUDIT"

    def test_rename_keeps_existing_key(self, library):
        library.update("b1", title="01: Interior Room draft")
        assert library.get("b1").workflow_key is WorkflowKey.EXTERIOR_MASSING

    def test_set_workflow_key(self, library):
        item = library.add(RuleCategory.WORKFLOW, title="Night shots")
        library.set_active("b5", False)
        library.set_workflow_key(item.id, WorkflowKey.FLAT_ELEVATION)
        assert library.workflow(WorkflowKey.FLAT_ELEVATION).id == item.id

    def test_set_workflow_key_on_axiom(self, library):
        with pytest.raises(ValueError):
            library.set_workflow_key("a1", WorkflowKey.AXIOM_AUDIT)

    def test_ambiguous_key_raises(self, library):
        library.add(RuleCategory.WORKFLOW, title="Second Axiom Audit")
        with pytest.raises(WorkflowLookupError):
            library.workflow(WorkflowKey.AXIOM_AUDIT)

    def test_ambiguity_resolved_by_deactivation(self, library):
        extra = library.add(RuleCategory.WORKFLOW, title="Second Axiom Audit")
        library.set_active("b2", False)
        assert library.workflow(WorkflowKey.AXIOM_AUDIT).id == extra.id

    def test_iteration_is_snapshot(self, library):
        items = list(library)
        library.remove("b7")
        assert len(items) == len(library) + 1

    def test_items_immutable(self, library):
        with pytest.raises(Exception):
            library.get("a1").title = "changed"


class TestLibraryFiles:
    """YAML persistence."""

    def test_round_trip(self, library, tmp_path):
        library.set_active("a2", False)
        path = save_library(library, tmp_path / "lib" / "library.yml")
        loaded = load_library(path)

        assert loaded.to_list() == library.to_list()
        assert loaded.get("a2").is_active is False

    def test_to_dict_shape(self):
        item = RuleItem("x", "02: Axiom Audit", "body", RuleCategory.WORKFLOW,
                        workflow_key=WorkflowKey.AXIOM_AUDIT)
        assert item.to_dict() == {
            "id": "x",
            "title": "02: Axiom Audit",
            "category": "B",
            "isActive": True,
            "content": "body",
            "workflowKey": "axiom_audit",
        }

    def test_carriage_house_library(self):
        lib = load_library(CONFIGS_DIR / "carriage_house_library.yml")
        assert len(lib.active_axioms()) >= 3
        for key in WorkflowKey:
            assert lib.workflow(key) is not None, key
        assert "{ROOM_NAME}" in lib.workflow(WorkflowKey.INTERIOR_ROOM).content


class TestLibraryCLI:
    def test_toggle_and_export(self, tmp_path, capsys):
        out = tmp_path / "library.yml"
        main(["--toggle", "a2", "--out", str(out)])

        printed = capsys.readouterr().out
        assert "OFF A" in printed
        assert "[axiom_audit]" in printed
        assert load_library(out).get("a2").is_active is False

    def test_default_library_is_fresh(self):
        first = default_library()
        first.toggle("a1")
        assert default_library().get("a1").is_active is True
