"""Shot export record: field order, empty skipping, defaults and the JSON Schema contract."""
from __future__ import annotations

import copy
import json

import jsonschema
import pytest

from continuity_engine import build_export_record, render_export_record
from continuity_engine.analysis.models import Shot
from continuity_engine.export import DEFAULT_TECHNICAL, EXPORT_FIELD_ORDER, validate_export_record
from continuity_engine.schema_loader import load_schema


def _full_shot():
    return {
        "shotId": "s1",
        "compositionPrompt": "{char_a} naps on prop_cushion",
        "technical": {"fps": 30, "seed": 3001},
        "character_definitions": [
            {"id": "char_a", "appearance": {"fur_color": "brown"}, "pose": "curled up"},
        ],
        "props": [{"id": "prop_cushion", "continuity": "persistent"}],
        "props_reference": ["prop_cushion"],
        "screen_direction": "lock_left_to_right",
        "parallax_lock": True,
        "continuity": {"scene_anchor": "inherit from previous shot"},
        "environment": {"location": "sunroom", "modifications": "minor only (≤10%)"},
        "sync": {
            "camera": {"aperture": "f/4.0"},
            "lighting": {"white_balance": "5600K"},
            "audio": {"sfx": ["sfx_soft_purr"]},
        },
        "animation": {"motion_constraints": ["no random zooms or reframing"]},
    }


class TestBuildExportRecord:

    def test_fields_follow_export_order(self):
        record = build_export_record(_full_shot())
        keys = list(record)
        assert keys == [field for field in EXPORT_FIELD_ORDER if field in record]
        assert keys[0] == "shot_id"
        assert keys[-1] == "technical"

    def test_sync_blocks_are_lifted(self):
        record = build_export_record(_full_shot())
        assert record["camera"] == {"aperture": "f/4.0"}
        assert record["lighting"] == {"white_balance": "5600K"}
        assert record["audio"] == {"sfx": ["sfx_soft_purr"]}
        assert "sync" not in record

    def test_character_appearance_flattened(self):
        record = build_export_record(_full_shot())
        assert record["characters"] == [{"id": "char_a", "fur_color": "brown", "pose": "curled up"}]

    def test_technical_defaults_under_shot_values(self):
        record = build_export_record(_full_shot())
        assert record["technical"] == {
            "fps": 30,
            "codec": "H.264",
            "negative_prompts": ["low quality", "blurry", "watermark"],
            "seed": 3001,
        }

    def test_empty_collections_skipped(self):
        record = build_export_record({
            "shotId": "s2",
            "compositionPrompt": "x",
            "props": [],
            "anchors": {},
            "environment": {},
        })
        assert list(record) == ["shot_id", "prompt", "technical"]
        assert record["technical"] == DEFAULT_TECHNICAL

    def test_input_not_mutated(self):
        raw = _full_shot()
        shot = Shot.model_validate(raw)
        before = shot.model_dump()
        build_export_record(shot)
        assert shot.model_dump() == before
        assert raw == _full_shot()

    def test_default_technical_not_shared(self):
        record = build_export_record({"shotId": "s3"})
        record["technical"]["negative_prompts"].append("mutated")
        assert "mutated" not in DEFAULT_TECHNICAL["negative_prompts"]


class TestRenderExportRecord:

    def test_render_keeps_order(self):
        text = render_export_record(_full_shot())
        assert list(json.loads(text)) == list(build_export_record(_full_shot()))

    def test_render_is_indented_and_unescaped(self):
        text = render_export_record(_full_shot())
        assert text.startswith('{\n  "shot_id": "s1"')
        assert "≤10%" in text

    def test_render_is_deterministic(self):
        assert render_export_record(_full_shot()) == render_export_record(copy.deepcopy(_full_shot()))


class TestExportContract:

    def test_contract_loads(self):
        schema = load_schema("ShotExport.v1.json")
        assert schema["title"] == "ShotExport"

    def test_missing_contract_raises(self):
        with pytest.raises(FileNotFoundError, match="NoSuchContract"):
            load_schema("NoSuchContract.v1.json")

    def test_built_record_conforms(self):
        validate_export_record(build_export_record(_full_shot()))

    def test_minimal_record_conforms(self):
        validate_export_record(build_export_record({"shotId": "s9"}))

    def test_missing_technical_rejected(self):
        with pytest.raises(jsonschema.ValidationError):
            validate_export_record({"shot_id": "s1"})

    def test_unknown_field_rejected(self):
        record = build_export_record(_full_shot())
        record["sync"] = {}
        with pytest.raises(jsonschema.ValidationError):
            validate_export_record(record)
