from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..validation.schema import validate_json_schema
from .archetypes import Archetype
from .types import CausalLink, CldNode, SwotEntry

WORKBOOK_SCHEMA = "workbook.schema.json"
SECTIONS = ("swot", "nodes", "links", "archetypes")


class Workbook(BaseModel):
    """The host document: SWOT entries, the diagram and archetype analyses."""

    swot: List[SwotEntry] = Field(default_factory=list, description="SWOT entries with metadata")
    nodes: List[CldNode] = Field(default_factory=list, description="Diagram variables")
    links: List[CausalLink] = Field(default_factory=list, description="Causal links")
    archetypes: List[Archetype] = Field(default_factory=list, description="Archetype analyses")

    def swot_by_id(self) -> Dict[str, SwotEntry]:
        return {e.id: e for e in self.swot}


def read_document(path: Path) -> Dict[str, Any]:
    """Read a YAML (`.yml`/`.yaml`) or JSON workbook into a plain dict."""
    if not path.exists():
        raise FileNotFoundError(f"Workbook not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in {".yml", ".yaml"}:
            data = yaml.safe_load(raw) or {}
        else:
            data = json.loads(raw)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValueError(f"Unreadable workbook: {path}: {e}")
    if not isinstance(data, dict):
        raise ValueError(f"Workbook must contain a mapping at top level: {path}")
    return data


def parse_workbook(data: Dict[str, Any], schema_path: Path | None = None) -> Workbook:
    """Validate a raw workbook dict (schema first, then types) into a `Workbook`."""
    # Be resilient to null/omitted sections (a blank YAML key loads as None)
    cleaned = dict(data)
    for key in SECTIONS:
        if cleaned.get(key) is None:
            cleaned[key] = []
    if schema_path is not None:
        validate_json_schema(cleaned, schema_path)
    cleaned = {k: cleaned[k] for k in SECTIONS}
    try:
        return Workbook(**cleaned)
    except ValidationError as e:
        raise ValueError(f"Invalid workbook: {e}")


def load_workbook(path: Path, schemas_dir: Path | None = None) -> Workbook:
    """Load and validate a workbook file.

    When `schemas_dir` is given, the document is checked against
    `workbook.schema.json` before type validation.
    """
    data = read_document(path)
    schema_path = schemas_dir / WORKBOOK_SCHEMA if schemas_dir is not None else None
    try:
        return parse_workbook(data, schema_path)
    except ValueError as e:
        raise ValueError(f"Invalid workbook file: {path}: {e}")
