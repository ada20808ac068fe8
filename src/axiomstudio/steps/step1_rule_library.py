#!/usr/bin/env python3
"""
step1_rule_library.py – Step 1/6 Rule Library
=============================================

Ordered, user-editable collection of prompt fragments:

- Category A (Constitution): axioms, concatenated into the system framing
- Category B (Workflow): templates, selected per operation by WorkflowKey

Workflow lookup is by exact key. A template's key is either given explicitly
or inferred once, at creation, from a title carrying exactly one key label
("02: Axiom Audit" → AXIOM_AUDIT). Two active templates sharing a key are an
error at lookup time, never resolved by list order.

Dependencies: PyYAML
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import yaml

from ..errors import WorkflowLookupError
from ..models import RuleCategory, WorkflowKey, WORKFLOW_LABELS, new_id

logger = logging.getLogger("axiomstudio.rule_library")

# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RuleItem:
    id: str
    title: str
    content: str
    category: RuleCategory
    is_active: bool = True
    workflow_key: Optional[WorkflowKey] = None

    @property
    def is_axiom(self) -> bool:
        return self.category is RuleCategory.CONSTITUTION

    @property
    def is_workflow(self) -> bool:
        return self.category is RuleCategory.WORKFLOW

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "title": self.title,
            "category": self.category.value,
            "isActive": self.is_active,
            "content": self.content,
        }
        if self.workflow_key is not None:
            data["workflowKey"] = self.workflow_key.value
        return data


def infer_workflow_key(title: str) -> Optional[WorkflowKey]:
    """Key whose label appears in ``title``; None when zero or several match."""
    lowered = title.lower()
    matches = [key for key, label in WORKFLOW_LABELS.items() if label.lower() in lowered]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        logger.warning(f"Title '{title}' matches several workflow labels; leaving it unkeyed")
    return None


# ---------------------------------------------------------------------------
# Library
# ---------------------------------------------------------------------------

class RuleLibrary:
    """Ordered rule items. Items are immutable; edits swap in a new copy."""

    def __init__(self, items: Optional[List[RuleItem]] = None):
        self._items: List[RuleItem] = []
        for item in items or []:
            self._append(item)

    def __iter__(self) -> Iterator[RuleItem]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> List[RuleItem]:
        return list(self._items)

    def get(self, item_id: str) -> RuleItem:
        for item in self._items:
            if item.id == item_id:
                return item
        raise KeyError(f"No library item with id {item_id!r}")

    def add(
        self,
        category: RuleCategory,
        title: Optional[str] = None,
        content: str = "# Content here",
        workflow_key: Optional[WorkflowKey] = None,
        is_active: bool = True,
        item_id: Optional[str] = None,
    ) -> RuleItem:
        if title is None:
            title = "New Axiom" if category is RuleCategory.CONSTITUTION else "New Workflow"
        item = RuleItem(
            id=item_id or new_id(),
            title=title,
            content=content,
            category=category,
            is_active=is_active,
            workflow_key=workflow_key,
        )
        return self._append(item)

    def update(self, item_id: str, title: Optional[str] = None, content: Optional[str] = None) -> RuleItem:
        """Edit title and/or content in place. Category never changes.

        An unkeyed workflow template picks up a key from its new title; an
        existing key survives renames.
        """
        current = self.get(item_id)
        changes: Dict[str, Any] = {}
        if title is not None:
            changes["title"] = title
            if current.is_workflow and current.workflow_key is None:
                changes["workflow_key"] = infer_workflow_key(title)
        if content is not None:
            changes["content"] = content
        updated = replace(current, **changes)
        self._swap(updated)
        return updated

    def set_workflow_key(self, item_id: str, key: Optional[WorkflowKey]) -> RuleItem:
        current = self.get(item_id)
        if not current.is_workflow:
            raise ValueError(f"Library item {item_id!r} is an axiom; only workflow templates take a key")
        updated = replace(current, workflow_key=key)
        self._swap(updated)
        return updated

    def set_active(self, item_id: str, active: bool) -> RuleItem:
        updated = replace(self.get(item_id), is_active=active)
        self._swap(updated)
        logger.info(f"Library item '{updated.title}' {'activated' if active else 'deactivated'}")
        return updated

    def toggle(self, item_id: str) -> RuleItem:
        return self.set_active(item_id, not self.get(item_id).is_active)

    def remove(self, item_id: str) -> RuleItem:
        item = self.get(item_id)
        self._items = [i for i in self._items if i.id != item_id]
        return item

    def active_axioms(self) -> List[RuleItem]:
        return [i for i in self._items if i.is_active and i.is_axiom]

    def workflow(self, key: WorkflowKey) -> Optional[RuleItem]:
        """The single active workflow template for ``key``, or None."""
        matches = [i for i in self._items if i.is_workflow and i.is_active and i.workflow_key is key]
        if len(matches) > 1:
            titles = ", ".join(repr(m.title) for m in matches)
            raise WorkflowLookupError(f"Workflow key {key.value} is ambiguous: {titles}")
        return matches[0] if matches else None

    # ---- internal ----

    def _append(self, item: RuleItem) -> RuleItem:
        if any(i.id == item.id for i in self._items):
            raise ValueError(f"Duplicate library item id {item.id!r}")
        if item.is_workflow and item.workflow_key is None:
            item = replace(item, workflow_key=infer_workflow_key(item.title))
        if item.is_axiom and item.workflow_key is not None:
            item = replace(item, workflow_key=None)
        self._items.append(item)
        return item

    def _swap(self, updated: RuleItem) -> None:
        self._items = [updated if i.id == updated.id else i for i in self._items]

    # ---- serialization ----

    def to_list(self) -> List[Dict[str, Any]]:
        return [item.to_dict() for item in self._items]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]]) -> "RuleLibrary":
        items = []
        for raw in data:
            key = raw.get("workflowKey")
            items.append(RuleItem(
                id=str(raw.get("id") or new_id()),
                title=raw["title"],
                content=raw.get("content", ""),
                category=RuleCategory(raw["category"]),
                is_active=bool(raw.get("isActive", True)),
                workflow_key=WorkflowKey(key) if key else None,
            ))
        return cls(items)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_ROOMS: List[Dict[str, Any]] = [
    {"id": "200", "name": "Living Room 200 (Hero Space, Vaulted)", "level": 2},
    {"id": "201", "name": "Kitchenette 201", "level": 2},
    {"id": "202", "name": "Bedroom 202 (East)", "level": 2},
    {"id": "206", "name": "Bedroom 206 (Northeast)", "level": 2},
    {"id": "204", "name": "Bathroom 204", "level": 2},
    {"id": "208", "name": "Utility / Entry 208", "level": 2},
    {"id": "G1", "name": "Garage Bay (3-Car)", "level": 1},
    {"id": "G2", "name": "Workshop / Shop Bay", "level": 1},
]


def default_library() -> RuleLibrary:
    """Starter library: two axioms plus one template per workflow purpose."""
    a, b = RuleCategory.CONSTITUTION, RuleCategory.WORKFLOW
    return RuleLibrary([
        RuleItem("a1", "System-Prompt.md", "# CORE CONSTITUTION\nPaste Cardinal Axioms here.", a),
        RuleItem("a2", "Known-Hallucinations.md", "# FAILURE CATALOG\nAvoid drive-through garages.", a),
        RuleItem("b1", "01: Exterior Massing", "Generate white-clay exterior {DIRECTION} isometric view.", b),
        RuleItem("b2", "02: Axiom Audit", "Verify image against axioms. Return PASS/FAIL.", b),
        RuleItem("b3", "03: Top-Down Plan", "Generate top-down floor plan view.", b),
        RuleItem("b4", "04: Interior Room", "Generate interior perspective of {ROOM_NAME}.", b),
        RuleItem("b5", "05: Flat Elevation", "Generate flat {DIRECTION} elevation.", b),
        RuleItem("b7", "07: Scoring Rubric", "Score output 1-10 on Structural Accuracy.", b),
    ])


def load_library(path: Union[str, Path]) -> RuleLibrary:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    items = data.get("items", []) if isinstance(data, dict) else data
    library = RuleLibrary.from_list(items)
    logger.info(f"Loaded {len(library)} library items from {path}")
    return library


def save_library(library: RuleLibrary, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump({"items": library.to_list()}, f, sort_keys=False, allow_unicode=True)
    return path


# ---------------------------------------------------------------------------
# CLI Interface
# ---------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="Step 1/6: Rule Library - list, toggle and export axioms/workflows",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--library", help="Library YAML file (default: built-in starter library)")
    parser.add_argument("--toggle", action="append", default=[], metavar="ID",
                        help="Toggle isActive on the given item id (repeatable)")
    parser.add_argument("--out", help="Write the resulting library to this YAML file")
    args = parser.parse_args(argv)

    library = load_library(args.library) if args.library else default_library()
    for item_id in args.toggle:
        library.toggle(item_id)

    for item in library:
        state = "ON " if item.is_active else "OFF"
        key = f" [{item.workflow_key.value}]" if item.workflow_key else ""
        print(f"{state} {item.category.value} {item.id:>10}  {item.title}{key}")

    if args.out:
        save_library(library, args.out)
        print(f"✅ Library saved to: {args.out}")


if __name__ == "__main__":
    main()
