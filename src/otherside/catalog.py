"""Load the static stage catalog from bundled JSON resources."""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

from .models import Stage, StageDefinition

CONTENT_PACKAGE = "otherside"
CATALOG_DIR = "content"
CATALOG_FILE = "stages.json"

Catalog = dict[Stage, StageDefinition]


def _stage_from_value(value: Any, field: str) -> Stage:
    """Parse one stage ordinal from raw JSON content."""
    try:
        return Stage(int(value))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid stage value for '{field}': {value!r}") from exc


def _definition_from_dict(raw: dict[str, Any]) -> StageDefinition:
    """Build a stage definition from raw JSON content."""
    stage = _stage_from_value(raw.get("stage"), "stage")
    answer = str(raw.get("answer", "")).strip()
    if answer != answer.upper():
        raise ValueError(f"Stage '{stage.name}' answer must be uppercase.")
    return StageDefinition(
        stage=stage,
        key=str(raw.get("key") or stage.name.lower()),
        prompt=str(raw["prompt"]),
        correct_answer=answer,
        next_stage=_stage_from_value(raw.get("next"), "next"),
        music=raw.get("music") or None,
        image=raw.get("image") or None,
        download_name=raw.get("download_name") or None,
    )


def _catalog_from_dict(raw: dict[str, Any]) -> Catalog:
    """Build and validate the full catalog."""
    catalog: Catalog = {}
    for item in raw.get("stages", []):
        definition = _definition_from_dict(item)
        if definition.stage in catalog:
            raise ValueError(f"Duplicate stage: {definition.stage.name}")
        catalog[definition.stage] = definition
    _validate_catalog(catalog)
    return dict(sorted(catalog.items()))


def _validate_catalog(catalog: Catalog) -> None:
    """Validate the catalog covers every stage and ends in a terminal stage."""
    missing = [stage.name for stage in Stage if stage not in catalog]
    if missing:
        raise ValueError(f"Catalog is missing stages: {', '.join(missing)}")

    terminal = max(Stage)
    if catalog[terminal].next_stage != terminal:
        raise ValueError(f"Terminal stage '{terminal.name}' must point to itself.")
    for stage, definition in catalog.items():
        if stage != terminal and definition.next_stage <= stage:
            raise ValueError(f"Stage '{stage.name}' must advance to a later stage.")


@lru_cache(maxsize=1)
def load_catalog() -> Catalog:
    """Load the bundled stage catalog."""
    entry = resources.files(CONTENT_PACKAGE) / CATALOG_DIR / CATALOG_FILE
    raw = json.loads(entry.read_text(encoding="utf-8-sig"))
    return _catalog_from_dict(raw)


def load_catalog_from_file(path: Path) -> Catalog:
    """Load a catalog from a JSON file for tests/tools."""
    raw = json.loads(path.read_text(encoding="utf-8-sig"))
    return _catalog_from_dict(raw)


def definition_of(stage: Stage) -> StageDefinition:
    """Return the static definition for a stage."""
    return load_catalog()[stage]


def track_for(stage: Stage) -> str | None:
    """Return the background music URL for a stage."""
    return definition_of(stage).music
