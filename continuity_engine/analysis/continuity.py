"""Continuity, spatial and cinematography detectors.

Issues raised here usually carry a structured ``patch``: the fields an author
(or the continuity merge in the aggregator) should set on the shot.  The
patch is kept as data; ``suggestion`` is only its rendered text.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Sequence, Set

from continuity_engine.analysis import rules
from continuity_engine.analysis.models import (
    AnalysisIssue,
    IssueSeverity,
    IssueType,
    Shot,
    render_patch,
)

_KELVIN_RE = re.compile(r"^\s*(-?\d+)")


def _patch_issue(patch: Dict[str, Any], **fields: Any) -> AnalysisIssue:
    return AnalysisIssue(patch=patch, suggestion=render_patch(patch), **fields)


def prop_tokens(prompt: str) -> List[str]:
    """``prop_<word>`` tokens found literally in *prompt*, first-seen order, no duplicates."""
    return list(dict.fromkeys(rules.PROP_TOKEN_RE.findall(prompt)))


# ── Continuity anchor / colour ────────────────────────────────────────────────


def detect_continuity_issues(shots: Sequence[Shot]) -> List[AnalysisIssue]:
    issues: List[AnalysisIssue] = []
    for index, shot in enumerate(shots):
        if index > 0 and not (shot.continuity and shot.continuity.scene_anchor):
            issues.append(AnalysisIssue(
                id=f"{shot.shot_id}-continuity-anchor",
                type=IssueType.CONTINUITY,
                severity=IssueSeverity.CRITICAL,
                shot_id=shot.shot_id,
                message="The shot has no continuity anchor tying it to the previous shot.",
                suggestion=(
                    "Run stabilization to add continuity blocks that inherit environment, "
                    "lighting and character state."
                ),
                is_fixable=True,
            ))
        technical = shot.technical or {}
        if technical.get("no_LUT") is None or technical.get("color_space") != rules.REQUIRED_COLOR_SPACE:
            issues.append(AnalysisIssue(
                id=f"{shot.shot_id}-continuity-color",
                type=IssueType.CONTINUITY,
                severity=IssueSeverity.WARNING,
                shot_id=shot.shot_id,
                message="Colour space or LUT settings are not locked.",
                suggestion="Set technical 'color_space' and 'no_LUT' to prevent colour drift.",
                is_fixable=True,
            ))
    return issues


# ── Prop references ───────────────────────────────────────────────────────────


def detect_advanced_continuity(shots: Sequence[Shot]) -> List[AnalysisIssue]:
    """Every ``prop_<word>`` token in a prompt must be in the shot's props_reference."""
    issues: List[AnalysisIssue] = []
    for shot in shots:
        referenced = shot.props_reference or []
        for prop_id in prop_tokens(shot.composition_prompt):
            if prop_id in referenced:
                continue
            issues.append(_patch_issue(
                {"props_reference": [prop_id]},
                id=f"{shot.shot_id}-prop-ref-{prop_id}",
                type=IssueType.PROP,
                severity=IssueSeverity.WARNING,
                shot_id=shot.shot_id,
                message=f"Prop '{prop_id}' is mentioned but not formally referenced.",
            ))
    return issues


# ── Seeds, persistent props, spatial locks, prop state ────────────────────────


def prop_prompt_name(prop_id: str) -> str:
    """Name a prop is expected to go by in prose: ``prop_rain_boot_01`` → ``rain``."""
    name = prop_id.replace("prop_", "", 1)
    name = re.sub(r"_\w+$", "", name, count=1)
    return name.replace("_", " ", 1)


def _prop_usage(shots: Sequence[Shot]) -> Dict[str, int]:
    usage: Dict[str, int] = {}
    for shot in shots:
        for prop_id in set(shot.props_reference or []):
            usage[prop_id] = usage.get(prop_id, 0) + 1
    return usage


def detect_spatial_and_prop_continuity(shots: Sequence[Shot]) -> List[AnalysisIssue]:
    issues: List[AnalysisIssue] = []
    usage = _prop_usage(shots)

    for shot in shots:
        if not (shot.technical or {}).get("seed"):
            issues.append(AnalysisIssue(
                id=f"{shot.shot_id}-spatial-seed-tech",
                type=IssueType.SPATIAL,
                severity=IssueSeverity.WARNING,
                shot_id=shot.shot_id,
                message="The shot has no shared technical seed.",
                suggestion=(
                    "Add \"seed\": 3001 to the 'technical' block for reproducible output. "
                    "Stabilization adds it automatically."
                ),
                is_fixable=True,
            ))

        for prop in shot.props or []:
            if usage.get(prop.id, 0) > 1 and prop.continuity != rules.PERSISTENT:
                issues.append(AnalysisIssue(
                    id=f"{shot.shot_id}-prop-persistent-{prop.id}",
                    type=IssueType.PROP,
                    severity=IssueSeverity.CRITICAL,
                    shot_id=shot.shot_id,
                    message=f"Reused prop '{prop.id}' is missing continuity: \"persistent\".",
                    suggestion=(
                        f"Add \"continuity\": \"persistent\" to the definition of '{prop.id}' "
                        "so it does not change between shots."
                    ),
                    is_fixable=True,
                ))

        if not shot.screen_direction or shot.parallax_lock is None:
            issues.append(_patch_issue(
                {"screen_direction": "lock_left_to_right", "parallax_lock": True},
                id=f"{shot.shot_id}-spatial-lock",
                type=IssueType.SPATIAL,
                severity=IssueSeverity.WARNING,
                shot_id=shot.shot_id,
                message=(
                    "The shot has no spatial locks; set them to keep the relative "
                    "placement of objects stable."
                ),
            ))

        prompt = shot.prompt_lower
        if not any(keyword in prompt for keyword in rules.PROP_STATE_KEYWORDS):
            continue
        overrides = shot.prop_state_override if isinstance(shot.prop_state_override, dict) else {}
        for prop_id in dict.fromkeys(shot.props_reference or []):
            if prop_prompt_name(prop_id) not in prompt or overrides.get(prop_id):
                continue
            issues.append(_patch_issue(
                {"prop_state_override": {prop_id: "describe the physical state here (e.g. 'wet with rain droplets')"}},
                id=f"{shot.shot_id}-prop-state-{prop_id}",
                type=IssueType.PROP,
                severity=IssueSeverity.WARNING,
                shot_id=shot.shot_id,
                message=f"The physical state of prop '{prop_id}' may not be locked.",
            ))
    return issues


# ── Mirror flips, wet/dry state, reaction shots ───────────────────────────────


def _anchor_x(shot: Shot, key: str) -> Optional[float]:
    anchor = (shot.anchors or {}).get(key)
    if anchor is None or not isinstance(anchor.xy, (list, tuple)) or not anchor.xy:
        return None
    x = anchor.xy[0]
    if isinstance(x, bool) or not isinstance(x, (int, float)):
        return None
    return x


def _is_mirrored(prev: Shot, curr: Shot) -> bool:
    if not prev.anchors or not curr.anchors:
        return False
    if curr.screen_direction and "lock" in curr.screen_direction:
        return False
    key = next(iter(prev.anchors))
    prev_x, curr_x = _anchor_x(prev, key), _anchor_x(curr, key)
    if prev_x is None or curr_x is None or prev_x == 0:
        return False
    return prev_x == -curr_x


def detect_comprehensive_spatial_and_temporal_errors(shots: Sequence[Shot]) -> List[AnalysisIssue]:
    """Mirror flips and missed reactions between neighbours; wet/dry state per character.

    A wet → dry → wet sequence is only reported when the shot has no
    ``state_persistence`` field at all; its contents are not inspected.
    """
    issues: List[AnalysisIssue] = []
    char_states: Dict[str, Set[str]] = {}

    for index, curr in enumerate(shots):
        prev = shots[index - 1] if index > 0 else None
        prompt = curr.prompt_lower

        if prev is not None and _is_mirrored(prev, curr):
            issues.append(_patch_issue(
                {"screen_direction": "lock_left_to_right", "parallax_lock": True},
                id=f"{curr.shot_id}-spatial-mirror",
                type=IssueType.SPATIAL,
                severity=IssueSeverity.CRITICAL,
                shot_id=curr.shot_id,
                message="The shot layout may have been mirrored (horizontal flip).",
            ))

        for char in curr.characters:
            states = char_states.setdefault(char.id, set())
            if any(word in prompt for word in rules.WET_KEYWORDS):
                if "dry" in states and curr.state_persistence is None:
                    issues.append(_patch_issue(
                        {"state_persistence": ["wet_fur", "mud_stains"], "state_decay_rate": "linear"},
                        id=f"{curr.shot_id}-temporal-state-{char.id}",
                        type=IssueType.TIMELINE,
                        severity=IssueSeverity.CRITICAL,
                        shot_id=curr.shot_id,
                        message=f"Character '{char.id}' changes state illogically (dry, then wet again).",
                    ))
                states.discard("dry")
                states.add("wet")
            if any(word in prompt for word in rules.DRY_KEYWORDS) and "wet" in states:
                states.discard("wet")
                states.add("dry")

        if prev is None:
            continue
        prev_prompt = prev.prompt_lower
        if any(trigger in prev_prompt for trigger in rules.ALARM_TRIGGERS) and not any(
            keyword in prompt for keyword in rules.REACTION_KEYWORDS
        ):
            issues.append(AnalysisIssue(
                id=f"{curr.shot_id}-narrative-reaction",
                type=IssueType.NARRATIVE,
                severity=IssueSeverity.WARNING,
                shot_id=curr.shot_id,
                message="No character reaction follows a significant event.",
                suggestion="Insert a shot of the character reacting to the previous shot's event.",
            ))
    return issues


# ── Axis, lens and white balance ──────────────────────────────────────────────


def parse_kelvin(value: Any) -> Optional[int]:
    """``"5600K"`` → 5600; None for anything without a leading integer."""
    if value is None or value == "":
        value = rules.DEFAULT_WHITE_BALANCE
    match = _KELVIN_RE.match(str(value).replace("K", ""))
    return int(match.group(1)) if match else None


def _focal_length(shot: Shot) -> Optional[float]:
    camera = (shot.sync.camera if shot.sync else None) or {}
    lens = camera.get("lens")
    if not isinstance(lens, dict):
        return None
    value = lens.get("focal_length")
    return value if isinstance(value, (int, float)) and not isinstance(value, bool) else None


def _white_balance(shot: Shot) -> Optional[int]:
    lighting = (shot.sync.lighting if shot.sync else None) or {}
    return parse_kelvin(lighting.get("white_balance"))


def detect_cinematography_and_lighting_errors(shots: Sequence[Shot]) -> List[AnalysisIssue]:
    issues: List[AnalysisIssue] = []
    for prev, curr in zip(shots, shots[1:]):
        prev_char = prev.characters[0] if prev.characters else None
        curr_char = curr.characters[0] if curr.characters else None
        if (
            prev_char and curr_char and prev_char.id == curr_char.id
            and "left" in (prev_char.position or "")
            and "right" in (curr_char.position or "")
        ):
            issues.append(_patch_issue(
                {"camera_axis_lock": True, "mirror_flip": False},
                id=f"{curr.shot_id}-camera-axis",
                type=IssueType.CAMERA,
                severity=IssueSeverity.CRITICAL,
                shot_id=curr.shot_id,
                message="Possible axis jump (180-degree rule violation).",
            ))

        prev_lens, curr_lens = _focal_length(prev), _focal_length(curr)
        if prev_lens and curr_lens and abs(prev_lens - curr_lens) > rules.MAX_FOCAL_LENGTH_DRIFT_MM:
            issues.append(_patch_issue(
                {"lens.match_previous": True, "lens_variation": "±10mm"},
                id=f"{curr.shot_id}-camera-lens",
                type=IssueType.CAMERA,
                severity=IssueSeverity.WARNING,
                shot_id=curr.shot_id,
                message=f"Focal length jumps from {prev_lens}mm to {curr_lens}mm.",
            ))

        prev_wb, curr_wb = _white_balance(prev), _white_balance(curr)
        if prev_wb is not None and curr_wb is not None and abs(prev_wb - curr_wb) > rules.MAX_WHITE_BALANCE_DRIFT_K:
            issues.append(_patch_issue(
                {"lighting_inherit": True, "white_balance_variation": "≤300K"},
                id=f"{curr.shot_id}-lighting-wb",
                type=IssueType.LIGHTING,
                severity=IssueSeverity.WARNING,
                shot_id=curr.shot_id,
                message=f"White balance jumps from {prev_wb}K to {curr_wb}K.",
            ))
    return issues
