"""Prompt and narrative detectors.

Each detector is a pure function over the flattened shot list (Timeline works
over scenes) that returns zero or more AnalysisIssue objects.  Detectors never
mutate their input and share no state; sequential checks keep small per-entity
trackers that live only for the duration of one call.

Issue IDs are ``<shotId>-<category>[-<discriminator>]`` and are unique across
a report as long as shot IDs are unique across the document.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from continuity_engine.analysis import rules
from continuity_engine.analysis.models import (
    AnalysisIssue,
    IssueSeverity,
    IssueType,
    Scene,
    Shot,
)
from continuity_engine.analysis.timecode import parse_timeline

UNEXPLAINED_FLIGHT = "unexplained_flight"


# ── Physics ───────────────────────────────────────────────────────────────────


def detect_physics_errors(shots: Sequence[Shot]) -> List[AnalysisIssue]:
    """Flight without a cause, falling upward, and walking on water."""
    issues: List[AnalysisIssue] = []
    for shot in shots:
        prompt = shot.prompt_lower
        if rules.FLIGHT_RE.search(prompt) and not rules.FLIGHT_CAUSE_RE.search(prompt):
            issues.append(AnalysisIssue(
                id=f"{shot.shot_id}-physics-fly",
                type=IssueType.PHYSICS,
                severity=IssueSeverity.CRITICAL,
                shot_id=shot.shot_id,
                message="A character appears to fly with no physical cause or stated reason.",
                suggestion=(
                    "Add a justifying action such as 'jumps and', 'is thrown by', "
                    "or mention a magical force."
                ),
                is_fixable=True,
                details={"violation": UNEXPLAINED_FLIGHT},
                original_prompt=shot.composition_prompt,
            ))
        if "falling upward" in prompt:
            issues.append(AnalysisIssue(
                id=f"{shot.shot_id}-physics-fall",
                type=IssueType.PHYSICS,
                severity=IssueSeverity.CRITICAL,
                shot_id=shot.shot_id,
                message="An object is described as 'falling upward', which breaks gravity.",
                suggestion="Fix the fall direction. Use 'rising' or 'floating' for upward motion.",
                original_prompt=shot.composition_prompt,
            ))
        if "walks on water" in prompt and not rules.WATER_WALK_CONTEXT_RE.search(prompt):
            issues.append(AnalysisIssue(
                id=f"{shot.shot_id}-physics-water",
                type=IssueType.PHYSICS,
                severity=IssueSeverity.CRITICAL,
                shot_id=shot.shot_id,
                message="A character 'walks on water' without explanation.",
                suggestion="Give context such as 'walks across the frozen lake' or 'wades through shallow water'.",
                original_prompt=shot.composition_prompt,
            ))
    return issues


# ── Character appearance ──────────────────────────────────────────────────────


def detect_character_issues(shots: Sequence[Shot]) -> List[AnalysisIssue]:
    """Compare each character's appearance with the last shot it was seen in."""
    issues: List[AnalysisIssue] = []
    last_seen: Dict[str, Tuple[Mapping, str]] = {}

    for shot in shots:
        for char in shot.characters:
            if char.id in last_seen:
                previous, previous_shot = last_seen[char.id]
                changed = [
                    key for key, value in char.appearance.items()
                    if previous.get(key) and previous[key] != value
                ]
                if changed:
                    changes = ", ".join(
                        f"{key} changed from '{previous[key]}' to '{char.appearance[key]}'"
                        for key in changed
                    )
                    issues.append(AnalysisIssue(
                        id=f"{shot.shot_id}-char-{char.id}",
                        type=IssueType.CHARACTER,
                        severity=IssueSeverity.CRITICAL,
                        shot_id=shot.shot_id,
                        message=f"Character '{char.id}' has an inconsistent appearance.",
                        suggestion=(
                            f"Check the attributes: {changes}. Keep them consistent or "
                            "justify the change in the script."
                        ),
                        details={"previousShot": previous_shot, "changes": changes},
                        original_prompt=shot.composition_prompt,
                    ))
            last_seen[char.id] = (char.appearance, shot.shot_id)
    return issues


# ── Location ──────────────────────────────────────────────────────────────────


def _match_jump(
    prev_loc: str, curr_loc: str, table: Mapping[str, Tuple[str, ...]]
) -> bool:
    return any(
        origin in prev_loc and any(dest in curr_loc for dest in destinations)
        for origin, destinations in table.items()
    )


def detect_location_issues(
    shots: Sequence[Shot],
    illogical: Mapping[str, Tuple[str, ...]] = rules.ILLOGICAL_JUMPS,
    abrupt: Mapping[str, Tuple[str, ...]] = rules.ABRUPT_JUMPS,
) -> List[AnalysisIssue]:
    """Flag illogical (Critical) and abrupt (Warning) jumps between consecutive shots."""
    issues: List[AnalysisIssue] = []
    for prev, curr in zip(shots, shots[1:]):
        if not (prev.location and prev.location.id and curr.location and curr.location.id):
            continue
        prev_loc = prev.location.id.lower()
        curr_loc = curr.location.id.lower()
        if prev_loc == curr_loc:
            continue

        if _match_jump(prev_loc, curr_loc, illogical):
            issues.append(AnalysisIssue(
                id=f"{curr.shot_id}-location-critical",
                type=IssueType.LOCATION,
                severity=IssueSeverity.CRITICAL,
                shot_id=curr.shot_id,
                message=f"Illogical location jump from '{prev_loc}' to '{curr_loc}'.",
                suggestion="Add a transition shot or reconsider the location change.",
                original_prompt=curr.composition_prompt,
            ))
        elif _match_jump(prev_loc, curr_loc, abrupt):
            issues.append(AnalysisIssue(
                id=f"{curr.shot_id}-location-warning",
                type=IssueType.LOCATION,
                severity=IssueSeverity.WARNING,
                shot_id=curr.shot_id,
                message=f"Abrupt location change from '{prev_loc}' to '{curr_loc}'.",
                suggestion="Make sure a smooth transition between these locations is shown or implied.",
                original_prompt=curr.composition_prompt,
            ))
    return issues


# ── Timeline ──────────────────────────────────────────────────────────────────


def detect_timeline_issues(scenes: Sequence[Scene]) -> List[AnalysisIssue]:
    """Report gaps between a scene's start and the previous scene's end.

    The running end time advances over every parsable scene, including scenes
    without shots; gaps are only reported for scenes that own a shot.
    """
    issues: List[AnalysisIssue] = []
    last_end = 0

    for index, scene in enumerate(scenes):
        parsed = parse_timeline(scene.timeline)
        if parsed is None:
            continue
        start, end = parsed
        if scene.visual_plan and index > 0 and start > last_end:
            gap = start - last_end
            first_shot = scene.visual_plan[0].shot_id
            issues.append(AnalysisIssue(
                id=f"{first_shot}-timeline",
                type=IssueType.TIMELINE,
                severity=IssueSeverity.CRITICAL,
                shot_id=first_shot,
                message=f"A {gap} second time gap was found before this scene.",
                suggestion="Move the scene start so it follows on from the previous scene's end.",
                is_fixable=True,
                details={
                    "previousEndTime": last_end,
                    "currentStartTime": start,
                    "gapInSeconds": gap,
                },
            ))
        last_end = end
    return issues


# ── Plot state ────────────────────────────────────────────────────────────────


@dataclass
class _EntityState:
    status: str
    shot_id: str


def _contains_any(text: str, phrases: Sequence[str]) -> bool:
    return any(phrase in text for phrase in phrases)


def detect_plot_inconsistencies(shots: Sequence[Shot]) -> List[AnalysisIssue]:
    """Track capture/injury/death per character and breakage per object.

    Checks run against the state left by earlier shots; state changes
    triggered by the current prompt are applied after the checks.
    """
    issues: List[AnalysisIssue] = []
    characters: Dict[str, _EntityState] = {}
    objects: Dict[str, _EntityState] = {}

    for shot in shots:
        prompt = shot.prompt_lower

        for char in shot.characters:
            state = characters.setdefault(char.id, _EntityState("ok", shot.shot_id))

            if state.status == "captured" and _contains_any(prompt, rules.CAPTURED_FREE_ACTIONS):
                issues.append(AnalysisIssue(
                    id=f"{shot.shot_id}-plot-captured-{char.id}",
                    type=IssueType.PLOT,
                    severity=IssueSeverity.CRITICAL,
                    shot_id=shot.shot_id,
                    message=f"Character '{char.id}' acts freely while still captured.",
                    suggestion=(
                        f"The character was captured in shot {state.shot_id}. "
                        "Show them being freed first."
                    ),
                    original_prompt=shot.composition_prompt,
                ))

            if state.status in ("injured", "dead") and _contains_any(prompt, rules.HEALTHY_ACTIONS):
                issues.append(AnalysisIssue(
                    id=f"{shot.shot_id}-plot-injury-{char.id}",
                    type=IssueType.PLOT,
                    severity=IssueSeverity.CRITICAL,
                    shot_id=shot.shot_id,
                    message=f"Character '{char.id}' acts healthy despite being {state.status} earlier.",
                    suggestion=(
                        f"The character was marked {state.status} in shot {state.shot_id}. "
                        "Add a recovery beat or fix the state."
                    ),
                    original_prompt=shot.composition_prompt,
                ))

            if _contains_any(prompt, rules.RESCUE_TRIGGERS):
                if state.status not in ("captured", "injured"):
                    issues.append(AnalysisIssue(
                        id=f"{shot.shot_id}-plot-rescue-{char.id}",
                        type=IssueType.PLOT,
                        severity=IssueSeverity.CRITICAL,
                        shot_id=shot.shot_id,
                        message=f"Character '{char.id}' is rescued without any prior capture or danger.",
                        suggestion="Make sure an earlier shot shows the character captured or in danger.",
                        original_prompt=shot.composition_prompt,
                    ))
                characters[char.id] = _EntityState("ok", shot.shot_id)

        for match in rules.PLOT_OBJECT_RE.finditer(prompt):
            name = match.group(1)
            object_id = name.replace(" ", "_", 1)
            state = objects.get(object_id)
            if state is not None and state.status == "broken" and (
                f"uses the {name}" in prompt or f"wields the {name}" in prompt
            ):
                issues.append(AnalysisIssue(
                    id=f"{shot.shot_id}-plot-object-{object_id}",
                    type=IssueType.PLOT,
                    severity=IssueSeverity.CRITICAL,
                    shot_id=shot.shot_id,
                    message=f"An already broken object is being used: '{name}'.",
                    suggestion=(
                        f"The object broke in shot {state.shot_id}. "
                        "It cannot be used unless it is repaired."
                    ),
                    original_prompt=shot.composition_prompt,
                ))
            if f"breaks the {name}" in prompt or f"shatters the {name}" in prompt:
                objects[object_id] = _EntityState("broken", shot.shot_id)

        for char in shot.characters:
            if _contains_any(prompt, rules.CAPTURE_TRIGGERS):
                characters[char.id] = _EntityState("captured", shot.shot_id)
            if _contains_any(prompt, rules.INJURY_TRIGGERS):
                characters[char.id] = _EntityState("injured", shot.shot_id)
            if _contains_any(prompt, rules.DEATH_TRIGGERS):
                characters[char.id] = _EntityState("dead", shot.shot_id)
    return issues


# ── Character locks ───────────────────────────────────────────────────────────


def positioning_template(first_id: str, second_id: str) -> str:
    return f" In the foreground, {{{first_id}}} is on the left and {{{second_id}}} is on the right."


def detect_character_locks(shots: Sequence[Shot]) -> List[AnalysisIssue]:
    """Require a bracketed reference per character and placement for pairs."""
    issues: List[AnalysisIssue] = []
    for shot in shots:
        for char in shot.characters:
            if not rules.character_lock_re(char.id).search(shot.composition_prompt):
                issues.append(AnalysisIssue(
                    id=f"{shot.shot_id}-lock-{char.id}",
                    type=IssueType.CHARACTER_LOCK,
                    severity=IssueSeverity.WARNING,
                    shot_id=shot.shot_id,
                    message=f"Character '{char.id}' is not locked in the prompt.",
                    suggestion=f"Add '{{{char.id}}}' to the prompt to keep the character consistent.",
                    is_fixable=True,
                    details={"characterId": char.id},
                    original_prompt=shot.composition_prompt,
                ))

        if len(shot.characters) > 1 and not rules.POSITION_WORDS_RE.search(shot.composition_prompt):
            first, second = shot.characters[0].id, shot.characters[1].id
            issues.append(AnalysisIssue(
                id=f"{shot.shot_id}-lock-positioning",
                type=IssueType.CHARACTER_LOCK,
                severity=IssueSeverity.WARNING,
                shot_id=shot.shot_id,
                message="Several characters share the shot but no placement words are given.",
                suggestion="Add placement words such as 'on the left', 'beside' or 'in the background'.",
                suggestion_template=positioning_template(first, second),
                original_prompt=shot.composition_prompt,
            ))
    return issues


# ── SFX ───────────────────────────────────────────────────────────────────────


def _keyword_groups(sfx_rules: Sequence[rules.SfxRule]) -> Dict[str, List[rules.SfxRule]]:
    groups: Dict[str, List[rules.SfxRule]] = {}
    for rule in sfx_rules:
        for keyword in rule.keywords:
            groups.setdefault(keyword, []).append(rule)
    return groups


def required_sfx(prompt: str, sfx_rules: Sequence[rules.SfxRule] = rules.SFX_RULES) -> Dict[str, str]:
    """Map each action keyword found in *prompt* to its context-appropriate SFX id.

    *prompt* must already be lower-cased.
    """
    required: Dict[str, str] = {}
    for keyword, candidates in _keyword_groups(sfx_rules).items():
        if not re.search(r"\b" + re.escape(keyword) + r"\b", prompt):
            continue
        chosen: Optional[str] = None
        for rule in candidates:
            if rule.context and any(ctx in prompt for ctx in rule.context):
                chosen = rule.sfx
                break
        if chosen is None:
            chosen = next((rule.sfx for rule in candidates if not rule.context), None)
        if chosen is not None:
            required[keyword] = chosen
    return required


def detect_sfx_issues(
    shots: Sequence[Shot],
    sfx_rules: Sequence[rules.SfxRule] = rules.SFX_RULES,
    low_quality: frozenset = rules.LOW_QUALITY_SFX,
) -> List[AnalysisIssue]:
    """Missing context-appropriate SFX and low-quality generic SFX."""
    issues: List[AnalysisIssue] = []
    for shot in shots:
        by_keyword = required_sfx(shot.prompt_lower, sfx_rules)
        needed = list(dict.fromkeys(by_keyword.values()))
        declared = list(dict.fromkeys(shot.declared_sfx))

        for sfx in needed:
            if sfx in declared:
                continue
            source = next(kw for kw, value in by_keyword.items() if value == sfx)
            issues.append(AnalysisIssue(
                id=f"{shot.shot_id}-sfx-missing-{sfx}",
                type=IssueType.SFX,
                severity=IssueSeverity.WARNING,
                shot_id=shot.shot_id,
                message=f"Action '{source}' was found but no matching SFX for its context.",
                suggestion=f"Add the sound effect '{sfx}' to support the shot.",
                is_fixable=True,
                details={"sfxToAdd": sfx},
                original_prompt=shot.composition_prompt,
            ))

        if not needed:
            continue
        for sfx in declared:
            if sfx not in low_quality:
                continue
            issues.append(AnalysisIssue(
                id=f"{shot.shot_id}-sfx-lowquality-{sfx}",
                type=IssueType.SFX,
                severity=IssueSeverity.WARNING,
                shot_id=shot.shot_id,
                message=f"Sound effect '{sfx}' is low quality or too generic.",
                suggestion=(
                    "Upgrade to a more specific SFX for the action in the shot, e.g. "
                    f"{', '.join(needed)}."
                ),
                is_fixable=True,
                details={"sfxToRemove": sfx, "sfxToAdd": list(needed)},
                original_prompt=shot.composition_prompt,
            ))
    return issues
