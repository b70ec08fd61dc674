"""
Prompt and narrative detectors: physics, character appearance, location,
timeline, plot state, character locks and SFX.

Each detector is exercised directly on a hand-built shot list; positive and
negative cases sit side by side.
"""
from __future__ import annotations

from continuity_engine.analysis import rules
from continuity_engine.analysis.detectors import (
    UNEXPLAINED_FLIGHT,
    detect_character_issues,
    detect_character_locks,
    detect_location_issues,
    detect_physics_errors,
    detect_plot_inconsistencies,
    detect_sfx_issues,
    detect_timeline_issues,
    positioning_template,
    required_sfx,
)
from continuity_engine.analysis.models import IssueSeverity, IssueType, Scene, Shot


# ─────────────────────────────────────────────────────────────────────────────
# Shared fixtures
# ─────────────────────────────────────────────────────────────────────────────

def _shot(shot_id, prompt="", **fields):
    return Shot.model_validate({"shotId": shot_id, "compositionPrompt": prompt, **fields})


def _char(char_id, **appearance):
    return {"id": char_id, "appearance": appearance}


def _scene(timeline, *shot_ids):
    return Scene.model_validate({
        "timeline": timeline,
        "visualPlan": [{"shotId": sid, "compositionPrompt": ""} for sid in shot_ids],
    })


def _ids(issues):
    return [issue.id for issue in issues]


# ─────────────────────────────────────────────────────────────────────────────
# Physics
# ─────────────────────────────────────────────────────────────────────────────

class TestPhysics:

    def test_unexplained_flight_is_fixable_critical(self):
        issues = detect_physics_errors([_shot("s1", "The cat flies over the fence")])
        assert len(issues) == 1
        issue = issues[0]
        assert issue.id == "s1-physics-fly"
        assert issue.type is IssueType.PHYSICS
        assert issue.severity is IssueSeverity.CRITICAL
        assert issue.is_fixable
        assert issue.details == {"violation": UNEXPLAINED_FLIGHT}
        assert issue.original_prompt == "The cat flies over the fence"

    def test_flight_with_cause_passes(self):
        assert detect_physics_errors([_shot("s1", "The cat jumps and flies over the fence")]) == []

    def test_flight_word_inside_other_word_ignored(self):
        assert detect_physics_errors([_shot("s1", "A butterfly drifts past the window")]) == []

    def test_falling_upward(self):
        issues = detect_physics_errors([_shot("s1", "The apple is falling upward")])
        assert _ids(issues) == ["s1-physics-fall"]
        assert not issues[0].is_fixable

    def test_walks_on_water_without_context(self):
        issues = detect_physics_errors([_shot("s1", "He walks on water")])
        assert _ids(issues) == ["s1-physics-water"]

    def test_walks_on_water_over_ice_passes(self):
        assert detect_physics_errors([_shot("s1", "He walks on water frozen into ice")]) == []


# ─────────────────────────────────────────────────────────────────────────────
# Character appearance
# ─────────────────────────────────────────────────────────────────────────────

class TestCharacterAppearance:

    def test_fur_colour_change_reported_on_later_shot(self):
        shots = [
            _shot("s1", character_definitions=[_char("char_a", fur_color="brown")]),
            _shot("s2"),
            _shot("s3", character_definitions=[_char("char_a", fur_color="white")]),
        ]
        issues = detect_character_issues(shots)
        assert len(issues) == 1
        issue = issues[0]
        assert issue.shot_id == "s3"
        assert issue.id == "s3-char-char_a"
        assert issue.type is IssueType.CHARACTER
        assert issue.severity is IssueSeverity.CRITICAL
        assert issue.details["previousShot"] == "s1"
        assert "fur_color changed from 'brown' to 'white'" in issue.details["changes"]

    def test_compares_with_most_recent_appearance(self):
        shots = [
            _shot("s1", character_definitions=[_char("char_a", fur_color="brown")]),
            _shot("s2", character_definitions=[_char("char_a", fur_color="white")]),
            _shot("s3", character_definitions=[_char("char_a", fur_color="white")]),
        ]
        assert _ids(detect_character_issues(shots)) == ["s2-char-char_a"]

    def test_new_attribute_is_not_a_change(self):
        shots = [
            _shot("s1", character_definitions=[_char("char_a", fur_color="brown")]),
            _shot("s2", character_definitions=[_char("char_a", fur_color="brown", eyes="green")]),
        ]
        assert detect_character_issues(shots) == []


# ─────────────────────────────────────────────────────────────────────────────
# Location
# ─────────────────────────────────────────────────────────────────────────────

class TestLocation:

    def test_illogical_jump_is_critical(self):
        shots = [_shot("s1", location={"id": "city_sewer"}), _shot("s2", location={"id": "open_sky"})]
        issues = detect_location_issues(shots)
        assert _ids(issues) == ["s2-location-critical"]
        assert issues[0].severity is IssueSeverity.CRITICAL

    def test_abrupt_jump_is_warning(self):
        shots = [_shot("s1", location={"id": "forest_edge"}), _shot("s2", location={"id": "dark_cave"})]
        issues = detect_location_issues(shots)
        assert _ids(issues) == ["s2-location-warning"]
        assert issues[0].severity is IssueSeverity.WARNING

    def test_same_location_passes(self):
        shots = [_shot("s1", location={"id": "sewer"}), _shot("s2", location={"id": "SEWER"})]
        assert detect_location_issues(shots) == []

    def test_missing_location_skipped(self):
        shots = [_shot("s1", location={"id": "sewer"}), _shot("s2")]
        assert detect_location_issues(shots) == []

    def test_custom_tables(self):
        shots = [_shot("s1", location={"id": "kitchen"}), _shot("s2", location={"id": "moon"})]
        issues = detect_location_issues(shots, illogical={"kitchen": ("moon",)}, abrupt={})
        assert _ids(issues) == ["s2-location-critical"]


# ─────────────────────────────────────────────────────────────────────────────
# Timeline
# ─────────────────────────────────────────────────────────────────────────────

class TestTimeline:

    def test_gap_reported_on_first_shot_of_scene(self):
        scenes = [_scene("0:00 - 0:05", "s1"), _scene("0:10 - 0:15", "s2", "s3")]
        issues = detect_timeline_issues(scenes)
        assert len(issues) == 1
        issue = issues[0]
        assert issue.id == "s2-timeline"
        assert issue.shot_id == "s2"
        assert issue.type is IssueType.TIMELINE
        assert issue.severity is IssueSeverity.CRITICAL
        assert issue.is_fixable
        assert issue.details == {"previousEndTime": 5, "currentStartTime": 10, "gapInSeconds": 5}

    def test_contiguous_scenes_pass(self):
        scenes = [_scene("0:00 - 0:05", "s1"), _scene("0:05 - 0:12", "s2")]
        assert detect_timeline_issues(scenes) == []

    def test_unparsable_timeline_skipped(self):
        scenes = [_scene("0:00 - 0:05", "s1"), _scene("later", "s2"), _scene("0:05 - 0:09", "s3")]
        assert detect_timeline_issues(scenes) == []

    def test_scene_without_shots_advances_clock(self):
        scenes = [_scene("0:00 - 0:05", "s1"), _scene("0:05 - 0:20"), _scene("0:20 - 0:30", "s2")]
        assert detect_timeline_issues(scenes) == []

    def test_first_scene_never_flagged(self):
        assert detect_timeline_issues([_scene("0:30 - 0:40", "s1")]) == []


# ─────────────────────────────────────────────────────────────────────────────
# Plot state
# ─────────────────────────────────────────────────────────────────────────────

class TestPlot:

    def test_captured_character_acting_freely(self):
        shots = [
            _shot("s1", "The fox is captured by the hunter", character_definitions=[_char("char_fox")]),
            _shot("s2", "The fox runs across the field", character_definitions=[_char("char_fox")]),
        ]
        issues = detect_plot_inconsistencies(shots)
        assert _ids(issues) == ["s2-plot-captured-char_fox"]
        assert issues[0].type is IssueType.PLOT

    def test_injured_character_acting_healthy(self):
        shots = [
            _shot("s1", "The fox is injured in the fall", character_definitions=[_char("char_fox")]),
            _shot("s2", "The fox jumps over the log", character_definitions=[_char("char_fox")]),
        ]
        assert _ids(detect_plot_inconsistencies(shots)) == ["s2-plot-injury-char_fox"]

    def test_rescue_without_danger(self):
        shots = [_shot("s1", "The fox is rescued", character_definitions=[_char("char_fox")])]
        assert _ids(detect_plot_inconsistencies(shots)) == ["s1-plot-rescue-char_fox"]

    def test_rescue_after_capture_clears_state(self):
        shots = [
            _shot("s1", "The fox is trapped", character_definitions=[_char("char_fox")]),
            _shot("s2", "The fox is rescued", character_definitions=[_char("char_fox")]),
            _shot("s3", "The fox runs home", character_definitions=[_char("char_fox")]),
        ]
        assert detect_plot_inconsistencies(shots) == []

    def test_broken_object_used_later(self):
        shots = [
            _shot("s1", "The knight breaks the magic sword"),
            _shot("s2", "The knight uses the magic sword"),
        ]
        assert _ids(detect_plot_inconsistencies(shots)) == ["s2-plot-object-magic_sword"]

    def test_same_shot_capture_does_not_trigger(self):
        shots = [_shot("s1", "The fox runs and is captured", character_definitions=[_char("char_fox")])]
        assert detect_plot_inconsistencies(shots) == []


# ─────────────────────────────────────────────────────────────────────────────
# Character locks
# ─────────────────────────────────────────────────────────────────────────────

class TestCharacterLocks:

    def test_unbracketed_character_is_fixable_warning(self):
        shots = [_shot("s1", "char_a walks", character_definitions=[{"id": "char_a"}])]
        issues = detect_character_locks(shots)
        assert len(issues) == 1
        issue = issues[0]
        assert issue.id == "s1-lock-char_a"
        assert issue.type is IssueType.CHARACTER_LOCK
        assert issue.severity is IssueSeverity.WARNING
        assert issue.is_fixable
        assert issue.details == {"characterId": "char_a"}

    def test_any_bracket_form_locks(self):
        for prompt in ("{char_a} walks", "[char_a] walks", "(char_a) walks", "<char_a> walks"):
            shots = [_shot("s1", prompt, character_definitions=[{"id": "char_a"}])]
            assert detect_character_locks(shots) == [], prompt

    def test_pair_without_placement_gets_template(self):
        shots = [_shot(
            "s1", "{char_a} and {char_b} play",
            character_definitions=[{"id": "char_a"}, {"id": "char_b"}],
        )]
        issues = detect_character_locks(shots)
        assert _ids(issues) == ["s1-lock-positioning"]
        assert issues[0].suggestion_template == positioning_template("char_a", "char_b")
        assert issues[0].suggestion_template == (
            " In the foreground, {char_a} is on the left and {char_b} is on the right."
        )
        assert not issues[0].is_fixable

    def test_pair_with_placement_passes(self):
        shots = [_shot(
            "s1", "{char_a} sits beside {char_b}",
            character_definitions=[{"id": "char_a"}, {"id": "char_b"}],
        )]
        assert detect_character_locks(shots) == []


# ─────────────────────────────────────────────────────────────────────────────
# SFX
# ─────────────────────────────────────────────────────────────────────────────

class TestSfx:

    def test_context_picks_grass_variant(self):
        assert required_sfx("the kitten chases a moth through the grass") == {
            "chases": "sfx_light_scamper_grass",
        }

    def test_context_picks_wood_variant(self):
        assert required_sfx("the kitten chases a moth across the floor") == {
            "chases": "sfx_light_scamper_wood",
        }

    def test_no_context_uses_default(self):
        assert required_sfx("the kitten chases a moth") == {"chases": "sfx_light_scamper_generic"}

    def test_missing_sfx_is_fixable_warning(self):
        shots = [_shot("s1", "The kitten chases a moth through the grass")]
        issues = detect_sfx_issues(shots)
        assert len(issues) == 1
        issue = issues[0]
        assert issue.id == "s1-sfx-missing-sfx_light_scamper_grass"
        assert issue.type is IssueType.SFX
        assert issue.severity is IssueSeverity.WARNING
        assert issue.is_fixable
        assert issue.details == {"sfxToAdd": "sfx_light_scamper_grass"}

    def test_declared_sfx_passes(self):
        shots = [_shot(
            "s1", "The kitten chases a moth through the grass",
            sync={"audio": {"sfx": ["sfx_light_scamper_grass"]}},
        )]
        assert detect_sfx_issues(shots) == []

    def test_low_quality_sfx_flagged_with_replacement(self):
        shots = [_shot(
            "s1", "The kitten chases a moth through the grass",
            sync={"audio": {"sfx": ["sfx_light_scamper_grass", "sfx_rustle"]}},
        )]
        issues = detect_sfx_issues(shots)
        assert _ids(issues) == ["s1-sfx-lowquality-sfx_rustle"]
        assert issues[0].details == {
            "sfxToRemove": "sfx_rustle",
            "sfxToAdd": ["sfx_light_scamper_grass"],
        }

    def test_low_quality_ignored_without_action(self):
        shots = [_shot("s1", "A quiet garden", sync={"audio": {"sfx": ["sfx_rustle"]}})]
        assert detect_sfx_issues(shots) == []

    def test_custom_rule_table(self):
        table = (rules.SfxRule(("sneezes",), "sfx_sneeze"),)
        issues = detect_sfx_issues([_shot("s1", "The cat sneezes")], sfx_rules=table)
        assert _ids(issues) == ["s1-sfx-missing-sfx_sneeze"]
