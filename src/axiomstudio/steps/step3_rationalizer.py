#!/usr/bin/env python3
"""
step3_rationalizer.py – Step 3/6 Spatial Rationalizer
=====================================================

Send the building documents (plans, sections, photos) plus the axiom-audit
workflow text to the text model as one structured-output request and parse
the reply into a BuildingMap and a material inventory.

There is no best-effort recovery: a reply that does not parse under the
schema raises OutputContractError, and the caller decides what to do.

Outputs (CLI):
- building_map.json
- inventory.json

Dependencies: PyYAML (library/config files)
"""

from __future__ import annotations

import json
import argparse
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..config import PipelineConfig, load_config
from ..errors import OutputContractError
from ..models import (
    BuildingMap,
    FeatureType,
    MaterialCategory,
    MaterialItem,
    RationalizationResult,
)
from ..service import GenerativeService, PromptPart
from .step1_rule_library import RuleLibrary, default_library, load_library
from .step2_prompt_assembler import PromptAssembler

logger = logging.getLogger("axiomstudio.rationalizer")

# ---------------------------------------------------------------------------
# Response schema
# ---------------------------------------------------------------------------

STRUCTURAL_FEATURE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "type": {"type": "STRING", "enum": [f.value for f in FeatureType]},
        "location": {"type": "STRING"},
        "details": {"type": "STRING"},
    },
    "required": ["type"],
}

ROOM_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "id": {"type": "STRING"},
        "name": {"type": "STRING"},
        "level": {"type": "INTEGER"},
        "dimensions": {"type": "STRING"},
        "sqFt": {"type": "NUMBER"},
        "structuralFeatures": {"type": "ARRAY", "items": STRUCTURAL_FEATURE_SCHEMA},
        "adjacencies": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["id", "name", "level"],
}

MATERIAL_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "id": {"type": "STRING"},
        "room": {"type": "STRING"},
        "category": {"type": "STRING", "enum": [c.value for c in MaterialCategory]},
        "type": {"type": "STRING"},
        "quantity": {"type": "STRING"},
        "unit": {"type": "STRING"},
        "notes": {"type": "STRING"},
    },
    "required": ["room", "category", "type"],
}

RATIONALIZE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "map": {
            "type": "OBJECT",
            "properties": {
                "totalLevels": {"type": "INTEGER"},
                "globalFootprint": {"type": "STRING"},
                "exteriorFeatures": {"type": "ARRAY", "items": {"type": "STRING"}},
                "rooms": {"type": "ARRAY", "items": ROOM_SCHEMA},
            },
            "required": ["totalLevels", "globalFootprint", "rooms"],
        },
        "inventory": {"type": "ARRAY", "items": MATERIAL_SCHEMA},
    },
    "required": ["map"],
}

# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Document:
    """One ingested building document."""
    data: bytes
    mime_type: str
    name: str = ""

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "Document":
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(data=path.read_bytes(), mime_type=mime_type or "image/jpeg", name=path.name)

    def to_part(self) -> PromptPart:
        return PromptPart.from_bytes(self.data, self.mime_type)


# ---------------------------------------------------------------------------
# Rationalizer
# ---------------------------------------------------------------------------

def parse_rationalization(data: Dict[str, Any]) -> RationalizationResult:
    """Strictly convert the parsed reply; any schema mismatch raises."""
    if "map" not in data:
        raise OutputContractError(json.dumps(data)[:500], "response has no 'map' object", kind="schema")
    inventory = data.get("inventory") or []
    if not isinstance(inventory, list):
        raise OutputContractError(str(inventory), "inventory must be a list", kind="schema")
    return RationalizationResult(
        map=BuildingMap.from_dict(data["map"]),
        inventory=[MaterialItem.from_dict(item) for item in inventory],
    )


class SpatialRationalizer:
    def __init__(self, service: GenerativeService, config: Optional[PipelineConfig] = None):
        self.service = service
        self.config = config or PipelineConfig()
        self.assembler = PromptAssembler(self.config)

    def rationalize(self, documents: List[Document], library: RuleLibrary) -> RationalizationResult:
        if not documents:
            raise ValueError("At least one document is required for rationalization")

        parts = [doc.to_part() for doc in documents]
        parts.append(PromptPart.from_text(self.assembler.rationalize_instruction(library)))

        logger.info(f"Rationalizing {len(documents)} document(s) into a building map")
        data = self.service.generate_structured(
            self.assembler.system_framing(library), parts, RATIONALIZE_SCHEMA
        )
        try:
            result = parse_rationalization(data)
        except OutputContractError as e:
            logger.error(f"Rationalization output rejected: {e}")
            raise

        logger.info(
            f"Building map: {result.map.total_levels} level(s), {len(result.map.rooms)} room(s), "
            f"{len(result.inventory)} inventory item(s)"
        )
        return result


# ---------------------------------------------------------------------------
# CLI Interface
# ---------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None, service: Optional[GenerativeService] = None):
    parser = argparse.ArgumentParser(
        description="Step 3/6: Spatial Rationalizer - documents to structured building map",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--docs", nargs="+", required=True, help="Plan/section/photo files to ingest")
    parser.add_argument("--library", help="Library YAML file (default: built-in starter library)")
    parser.add_argument("--config", help="Pipeline configuration YAML file")
    parser.add_argument("--out", default="./rationalize", help="Output directory")
    parser.add_argument("--api-key", help="Gemini API key (default: GEMINI_API_KEY / GOOGLE_API_KEY)")
    args = parser.parse_args(argv)

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    config = load_config(args.config)
    library = load_library(args.library) if args.library else default_library()
    if service is None:
        from ..utils.gemini_service import GeminiService
        service = GeminiService(config, api_key=args.api_key)

    documents = [Document.from_path(p) for p in args.docs]
    try:
        result = SpatialRationalizer(service, config).rationalize(documents, library)
    except Exception as e:
        logger.error(f"Rationalization failed: {e}")
        raise

    with open(out_dir / "building_map.json", "w", encoding="utf-8") as f:
        json.dump(result.map.to_dict(), f, indent=2)
    with open(out_dir / "inventory.json", "w", encoding="utf-8") as f:
        json.dump([item.to_dict() for item in result.inventory], f, indent=2)

    print(f"✅ Rationalization complete! Output saved to: {args.out}")
    print(f"🏠 Levels: {result.map.total_levels}  Rooms: {len(result.map.rooms)}")
    print(f"📦 Inventory items: {len(result.inventory)}")
    return result


if __name__ == "__main__":
    main()
