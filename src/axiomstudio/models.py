"""
models.py – Shared data structures
==================================

Dataclasses and enums passed between the pipeline steps:

- Rule library entries (axioms and workflow templates)
- Render requests and results
- Building map produced by the spatial rationalizer
- Structured audit output (score, failures, verdict)

Every structure that crosses the generative-service boundary has a
``from_dict`` that raises ``OutputContractError`` when the payload does not
match the declared schema, and a ``to_dict`` producing the same wire shape.
"""

from __future__ import annotations

import math
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import OutputContractError


def new_id() -> str:
    """Short random identifier for results and library items."""
    return uuid.uuid4().hex[:9]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class RuleCategory(str, Enum):
    CONSTITUTION = "A"
    WORKFLOW = "B"


class WorkflowKey(str, Enum):
    """Stable purpose key for a workflow template."""
    AXIOM_AUDIT = "axiom_audit"
    SCORING_RUBRIC = "scoring_rubric"
    EXTERIOR_MASSING = "exterior_massing"
    FLAT_ELEVATION = "flat_elevation"
    TOP_DOWN_PLAN = "top_down_plan"
    INTERIOR_ROOM = "interior_room"

    @property
    def label(self) -> str:
        return WORKFLOW_LABELS[self]


WORKFLOW_LABELS: Dict[WorkflowKey, str] = {
    WorkflowKey.AXIOM_AUDIT: "Axiom Audit",
    WorkflowKey.SCORING_RUBRIC: "Scoring Rubric",
    WorkflowKey.EXTERIOR_MASSING: "Exterior Massing",
    WorkflowKey.FLAT_ELEVATION: "Flat Elevation",
    WorkflowKey.TOP_DOWN_PLAN: "Top-Down Plan",
    WorkflowKey.INTERIOR_ROOM: "Interior Room",
}


class RenderKind(str, Enum):
    EXTERIOR_ISOMETRIC = "exterior_iso"
    EXTERIOR_ELEVATION = "exterior_elev"
    INTERIOR_PLAN = "interior_plan"
    INTERIOR_PERSPECTIVE = "interior_persp"

    @property
    def workflow_key(self) -> WorkflowKey:
        return RENDER_KIND_WORKFLOWS[self]


RENDER_KIND_WORKFLOWS: Dict[RenderKind, WorkflowKey] = {
    RenderKind.EXTERIOR_ISOMETRIC: WorkflowKey.EXTERIOR_MASSING,
    RenderKind.EXTERIOR_ELEVATION: WorkflowKey.FLAT_ELEVATION,
    RenderKind.INTERIOR_PLAN: WorkflowKey.TOP_DOWN_PLAN,
    RenderKind.INTERIOR_PERSPECTIVE: WorkflowKey.INTERIOR_ROOM,
}


class RenderStatus(str, Enum):
    VERIFIED = "VERIFIED"
    VIOLATION = "VIOLATION"
    PENDING = "PENDING"


class Verdict(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class FailureCategory(str, Enum):
    ROOF = "ROOF"
    STAIRCASE = "STAIRCASE"
    SOUTH_WALL = "SOUTH_WALL"
    EAST_WALL = "EAST_WALL"
    WEST_WALL = "WEST_WALL"
    NORTH_WALL = "NORTH_WALL"
    DECK = "DECK"
    FOOTPRINT = "FOOTPRINT"


class FeatureType(str, Enum):
    STAIRS = "Stairs"
    DOOR = "Door"
    WINDOW = "Window"
    FIREPLACE = "Fireplace"
    DECK = "Deck"
    OPENING = "Opening"
    NICHE = "Niche"


class MaterialCategory(str, Enum):
    FINISHES = "Finishes"
    FURNISHINGS = "Furnishings"
    STRUCTURAL = "Structural"
    ELECTRICAL = "Electrical"
    PLUMBING = "Plumbing"


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def _require(data: Dict[str, Any], key: str, kind: str) -> Any:
    if not isinstance(data, dict):
        raise OutputContractError(str(data), f"expected object for {kind}", kind="schema")
    if key not in data or data[key] is None:
        raise OutputContractError(str(data), f"{kind}.{key} is missing", kind="schema")
    return data[key]


def _enum(enum_cls, value: Any, kind: str):
    try:
        return enum_cls(str(value).strip())
    except ValueError:
        raise OutputContractError(str(value), f"{kind}: unknown value {value!r}", kind="schema")


def _str_list(value: Any, kind: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise OutputContractError(str(value), f"{kind} must be a list", kind="schema")
    return [str(v) for v in value]


def _int(value: Any, kind: str) -> int:
    # JSON numbers arrive as floats from some models ("level": 2.0)
    if isinstance(value, bool):
        raise OutputContractError(str(value), f"{kind} must be a number", kind="schema")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise OutputContractError(str(value), f"{kind} must be a number", kind="schema")
    if not math.isfinite(number):
        raise OutputContractError(str(value), f"{kind} must be finite", kind="schema")
    if number != int(number):
        raise OutputContractError(str(value), f"{kind} must be an integer", kind="schema")
    return int(number)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RenderRequest:
    """One requested view. Fully determines template and placeholders."""
    kind: RenderKind
    viewpoint: str
    target_room_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "viewpoint": self.viewpoint,
            "targetRoomId": self.target_room_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RenderRequest":
        return cls(
            kind=RenderKind(data["type"]),
            viewpoint=data.get("viewpoint", ""),
            target_room_id=data.get("targetRoomId") or None,
        )


# ---------------------------------------------------------------------------
# Building map
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StructuralFeature:
    type: FeatureType
    location: str = ""
    details: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructuralFeature":
        return cls(
            type=_enum(FeatureType, _require(data, "type", "structuralFeature"), "structuralFeature.type"),
            location=str(data.get("location", "")),
            details=str(data.get("details", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "location": self.location, "details": self.details}


@dataclass(frozen=True)
class Room:
    id: str
    name: str
    level: int
    dimensions: str = ""
    sq_ft: float = 0.0
    structural_features: List[StructuralFeature] = field(default_factory=list)
    adjacencies: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Room":
        if not isinstance(data, dict):
            raise OutputContractError(str(data), "expected object for room", kind="schema")
        features = data.get("structuralFeatures") or []
        if not isinstance(features, list):
            raise OutputContractError(str(features), "room.structuralFeatures must be a list", kind="schema")
        sq_ft = data.get("sqFt", 0)
        try:
            sq_ft = float(sq_ft or 0)
        except (TypeError, ValueError):
            raise OutputContractError(str(sq_ft), "room.sqFt must be a number", kind="schema")
        return cls(
            id=str(_require(data, "id", "room")),
            name=str(_require(data, "name", "room")),
            level=_int(_require(data, "level", "room"), "room.level"),
            dimensions=str(data.get("dimensions", "")),
            sq_ft=sq_ft,
            structural_features=[StructuralFeature.from_dict(f) for f in features],
            adjacencies=_str_list(data.get("adjacencies"), "room.adjacencies"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "dimensions": self.dimensions,
            "sqFt": self.sq_ft,
            "structuralFeatures": [f.to_dict() for f in self.structural_features],
            "adjacencies": list(self.adjacencies),
        }


@dataclass(frozen=True)
class BuildingMap:
    total_levels: int
    global_footprint: str
    exterior_features: List[str]
    rooms: List[Room]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BuildingMap":
        rooms = _require(data, "rooms", "map")
        if not isinstance(rooms, list):
            raise OutputContractError(str(rooms), "map.rooms must be a list", kind="schema")
        return cls(
            total_levels=_int(_require(data, "totalLevels", "map"), "map.totalLevels"),
            global_footprint=str(_require(data, "globalFootprint", "map")),
            exterior_features=_str_list(data.get("exteriorFeatures"), "map.exteriorFeatures"),
            rooms=[Room.from_dict(r) for r in rooms],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalLevels": self.total_levels,
            "globalFootprint": self.global_footprint,
            "exteriorFeatures": list(self.exterior_features),
            "rooms": [r.to_dict() for r in self.rooms],
        }

    def find_room(self, room_id: Optional[str]) -> Optional[Room]:
        if not room_id:
            return None
        return next((r for r in self.rooms if r.id == room_id), None)


@dataclass(frozen=True)
class MaterialItem:
    id: str
    room: str
    category: MaterialCategory
    type: str
    quantity: str = ""
    unit: str = ""
    notes: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MaterialItem":
        if not isinstance(data, dict):
            raise OutputContractError(str(data), "expected object for inventory item", kind="schema")
        return cls(
            id=str(data.get("id") or new_id()),
            room=str(_require(data, "room", "inventory")),
            category=_enum(MaterialCategory, _require(data, "category", "inventory"), "inventory.category"),
            type=str(_require(data, "type", "inventory")),
            quantity=str(data.get("quantity", "")),
            unit=str(data.get("unit", "")),
            notes=str(data.get("notes", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "room": self.room,
            "category": self.category.value,
            "type": self.type,
            "quantity": self.quantity,
            "unit": self.unit,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class RationalizationResult:
    map: BuildingMap
    inventory: List[MaterialItem]


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

SCORE_AXES = (
    "structural_accuracy",
    "spatial_geometry",
    "staircase_fidelity",
    "deck_accuracy",
    "south_wall_solidity",
    "render_quality",
)
AXIS_MAX = 10
SCORE_MAX = AXIS_MAX * len(SCORE_AXES)


@dataclass(frozen=True)
class AuditScore:
    """Six 0-10 axes plus the model-reported total (not re-summed)."""
    structural_accuracy: int = 0
    spatial_geometry: int = 0
    staircase_fidelity: int = 0
    deck_accuracy: int = 0
    south_wall_solidity: int = 0
    render_quality: int = 0
    total: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditScore":
        values = {}
        for axis in SCORE_AXES:
            value = _int(_require(data, axis, "score"), f"score.{axis}")
            if not 0 <= value <= AXIS_MAX:
                raise OutputContractError(str(value), f"score.{axis} out of range", kind="schema")
            values[axis] = value
        total = _int(_require(data, "total", "score"), "score.total")
        if not 0 <= total <= SCORE_MAX:
            raise OutputContractError(str(total), "score.total out of range", kind="schema")
        return cls(total=total, **values)

    def to_dict(self) -> Dict[str, int]:
        data = {axis: getattr(self, axis) for axis in SCORE_AXES}
        data["total"] = self.total
        return data


@dataclass(frozen=True)
class AuditFailure:
    category: FailureCategory
    description: str
    axiom_correction: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditFailure":
        return cls(
            category=_enum(FailureCategory, _require(data, "category", "failure"), "failure.category"),
            description=str(_require(data, "description", "failure")),
            axiom_correction=str(data.get("axiom_correction", "")),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "category": self.category.value,
            "description": self.description,
            "axiom_correction": self.axiom_correction,
        }


@dataclass(frozen=True)
class AuditReport:
    """Parsed audit response. ``verdict`` is None when nothing could be parsed."""
    narrative: str = ""
    verdict: Optional[Verdict] = None
    failures: List[AuditFailure] = field(default_factory=list)
    score: AuditScore = field(default_factory=AuditScore)
    degraded: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditReport":
        if not isinstance(data, dict):
            raise OutputContractError(str(data), "audit must be an object", kind="schema")
        if not data:
            return cls()
        failures = data.get("failures") or []
        if not isinstance(failures, list):
            raise OutputContractError(str(failures), "failures must be a list", kind="schema")
        raw_verdict = _require(data, "verdict", "audit")
        return cls(
            narrative=str(data.get("narrative", "")),
            verdict=_enum(Verdict, str(raw_verdict).upper(), "audit.verdict"),
            failures=[AuditFailure.from_dict(f) for f in failures],
            score=AuditScore.from_dict(_require(data, "score", "audit")),
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ImageResponse:
    """What the image endpoint handed back: maybe an image, maybe text."""
    image_bytes: Optional[bytes] = None
    text: str = ""
    mime_type: str = "image/png"


def _pass_number(value: Any) -> int:
    number = _int(value, "result.refinementPass")
    if number < 0:
        raise OutputContractError(str(value), "result.refinementPass must be >= 0", kind="schema")
    return number


@dataclass(frozen=True)
class RenderResult:
    id: str
    image_bytes: bytes
    self_score_text: str
    audit_text: str
    audit_failures: List[AuditFailure]
    audit_score: AuditScore
    status: RenderStatus
    request: RenderRequest
    timestamp: float = field(default_factory=time.time)
    refinement_pass: int = 0
    is_validated: bool = True
    verdict: Optional[Verdict] = None
    image_mime_type: str = "image/png"
    ceiling_reached: bool = False

    @property
    def is_verified(self) -> bool:
        return self.status is RenderStatus.VERIFIED

    @property
    def can_refine(self) -> bool:
        return self.status is RenderStatus.VIOLATION and not self.ceiling_reached

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe view; image bytes are written separately by the caller."""
        return {
            "id": self.id,
            "selfScoreText": self.self_score_text,
            "auditText": self.audit_text,
            "auditFailures": [f.to_dict() for f in self.audit_failures],
            "auditScore": self.audit_score.to_dict(),
            "status": self.status.value,
            "verdict": self.verdict.value if self.verdict else None,
            "request": self.request.to_dict(),
            "timestamp": self.timestamp,
            "refinementPass": self.refinement_pass,
            "isValidated": self.is_validated,
            "imageMimeType": self.image_mime_type,
            "ceilingReached": self.ceiling_reached,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], image_bytes: bytes) -> "RenderResult":
        verdict = data.get("verdict")
        return cls(
            id=data["id"],
            image_bytes=image_bytes,
            self_score_text=data.get("selfScoreText", ""),
            audit_text=data.get("auditText", ""),
            audit_failures=[AuditFailure.from_dict(f) for f in data.get("auditFailures", [])],
            audit_score=AuditScore.from_dict(data["auditScore"]) if data.get("auditScore") else AuditScore(),
            status=RenderStatus(data["status"]),
            request=RenderRequest.from_dict(data["request"]),
            timestamp=float(data.get("timestamp", time.time())),
            refinement_pass=_pass_number(data.get("refinementPass", 0)),
            is_validated=bool(data.get("isValidated", True)),
            verdict=Verdict(verdict) if verdict else None,
            image_mime_type=data.get("imageMimeType", "image/png"),
            ceiling_reached=bool(data.get("ceilingReached", False)),
        )
