"""Shot export record — the flattened projection consumed by the video generator.

Field order, empty-value skipping and the default technical bundle are part
of the downstream contract (contracts/ShotExport.v1.json):

- fields are emitted in EXPORT_FIELD_ORDER
- None, empty lists and empty objects are skipped
- ``technical`` always carries fps / codec / negative_prompts defaults,
  overridden by whatever the shot declares
- each character is flattened to ``{id, **appearance, **other fields}``
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Union

import jsonschema

from continuity_engine.analysis.models import CharacterDefinition, Shot
from continuity_engine.schema_loader import load_schema

DEFAULT_TECHNICAL: Dict[str, Any] = {
    "fps": 24,
    "codec": "H.264",
    "negative_prompts": ["low quality", "blurry", "watermark"],
}

EXPORT_FIELD_ORDER = (
    "shot_id",
    "prompt",
    "continuity",
    "anchors",
    "screen_direction",
    "parallax_lock",
    "environment",
    "camera",
    "lighting",
    "characters",
    "props",
    "props_reference",
    "prop_state_override",
    "audio",
    "animation",
    "technical",
)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, dict)) and len(value) == 0:
        return True
    return False


def _dump(value: Any) -> Any:
    """Dump models to plain JSON-ready data; leave everything else as-is."""
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, list):
        return [_dump(item) for item in value]
    if isinstance(value, dict):
        return {key: _dump(item) for key, item in value.items()}
    return value


def flatten_character(char: CharacterDefinition) -> Dict[str, Any]:
    rest = char.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"id", "appearance"})
    return {"id": char.id, **char.appearance, **rest}


def build_export_record(shot: Union[Shot, Dict[str, Any]]) -> Dict[str, Any]:
    """Project *shot* to an ordered export dict (pure; *shot* is not modified)."""
    if not isinstance(shot, Shot):
        shot = Shot.model_validate(shot)
    sync = shot.sync
    characters: Optional[List[Dict[str, Any]]] = (
        [flatten_character(char) for char in shot.character_definitions]
        if shot.character_definitions is not None
        else None
    )
    values = {
        "shot_id": shot.shot_id,
        "prompt": shot.composition_prompt,
        "continuity": shot.continuity,
        "anchors": shot.anchors,
        "screen_direction": shot.screen_direction,
        "parallax_lock": shot.parallax_lock,
        "environment": shot.environment,
        "camera": sync.camera if sync else None,
        "lighting": sync.lighting if sync else None,
        "characters": characters,
        "props": shot.props,
        "props_reference": shot.props_reference,
        "prop_state_override": shot.prop_state_override,
        "audio": sync.audio if sync else None,
        "animation": shot.animation,
        "technical": {**DEFAULT_TECHNICAL, **(shot.technical or {})},
    }

    record: Dict[str, Any] = {}
    for field in EXPORT_FIELD_ORDER:
        value = _dump(values[field])
        if not _is_empty(value):
            record[field] = value
    return record


def render_export_record(shot: Union[Shot, Dict[str, Any]], *, indent: int = 2) -> str:
    """Serialize the export record; key order is preserved, not sorted."""
    return json.dumps(build_export_record(shot), indent=indent, ensure_ascii=False)


def validate_export_record(record: Dict[str, Any]) -> None:
    """Validate an export record against contracts/ShotExport.v1.json.

    Raises jsonschema.ValidationError if non-conformant.
    """
    jsonschema.validate(record, load_schema("ShotExport.v1.json"))
