"""
autofix.py — mechanical fixes for fixable analysis issues.

auto_fix dispatches strictly on the issue type; types without a fixer are
ignored.  Timeline issues are fixed in one batch after the per-issue pass
because moving one scene shifts every scene after it.  Callers re-run
analysis afterwards; auto_fix does not verify its own result.
"""

import re
from typing import Any, Callable, Dict, List, Sequence, Tuple, Union

from continuity_engine.analysis import rules
from continuity_engine.analysis.detectors import UNEXPLAINED_FLIGHT
from continuity_engine.analysis.models import AnalysisIssue, AudioSync, IssueType, ScriptDocument, Shot, ShotSync
from continuity_engine.analysis.timecode import format_timeline, parse_timeline
from continuity_engine.schemas.document_v1 import coerce_document

_CHAR_PREFIX = "char_"
_CHAR_INDEX_SUFFIX_RE = re.compile(r"_\d+$")


def character_name(char_id: str) -> str:
    """Bare name for a character id: ``char_fox_2`` -> ``fox``."""
    return _CHAR_INDEX_SUFFIX_RE.sub("", char_id.replace(_CHAR_PREFIX, "", 1))


# ── Per-issue fixers ──────────────────────────────────────────────────────────


def _fix_character_lock(shot: Shot, issue: AnalysisIssue) -> int:
    char_id = (issue.details or {}).get("characterId")
    if not char_id or rules.character_lock_re(char_id).search(shot.composition_prompt):
        return 0
    name_re = re.compile(r"^(" + re.escape(character_name(char_id)) + ")", re.IGNORECASE)
    if name_re.search(shot.composition_prompt):
        shot.composition_prompt = name_re.sub(
            lambda m: f"{{{char_id}}} {m.group(1)}", shot.composition_prompt, count=1
        )
    else:
        shot.composition_prompt = f"{{{char_id}}} {shot.composition_prompt}"
    return 1


def _fix_physics(shot: Shot, issue: AnalysisIssue) -> int:
    if not issue.is_fixable or (issue.details or {}).get("violation") != UNEXPLAINED_FLIGHT:
        return 0
    fixed = rules.FLIGHT_FIX_RE.sub(lambda m: f"jumps and {m.group(0)}", shot.composition_prompt, count=1)
    if fixed == shot.composition_prompt:
        return 0
    shot.composition_prompt = fixed
    return 1


def _fix_sfx(shot: Shot, issue: AnalysisIssue) -> int:
    details = issue.details or {}
    to_add = details.get("sfxToAdd")
    if not to_add:
        return 0
    wanted: List[str] = [to_add] if isinstance(to_add, str) else list(to_add)

    if shot.sync is None:
        shot.sync = ShotSync()
    if shot.sync.audio is None:
        shot.sync.audio = AudioSync()
    sfx = list(shot.sync.audio.sfx or [])

    changed = False
    to_remove = details.get("sfxToRemove")
    if to_remove and to_remove in sfx:
        sfx = [item for item in sfx if item != to_remove]
        changed = True
    for item in wanted:
        if item not in sfx:
            sfx.append(item)
            changed = True

    shot.sync.audio.sfx = sfx
    return 1 if changed else 0


_FIXERS: Dict[IssueType, Callable[[Shot, AnalysisIssue], int]] = {
    IssueType.CHARACTER_LOCK: _fix_character_lock,
    IssueType.PHYSICS: _fix_physics,
    IssueType.SFX: _fix_sfx,
}


# ── Timeline batch ────────────────────────────────────────────────────────────


def _fix_timelines(document: ScriptDocument, issues: Sequence[AnalysisIssue]) -> int:
    """Slide flagged scenes back to the previous scene's end, keeping durations."""
    flagged = {issue.shot_id for issue in issues}
    fixes = 0
    last_end: Any = 0
    for scene in document.script:
        parsed = parse_timeline(scene.timeline)
        if parsed is None:
            continue
        start, end = parsed
        owns_issue = any(shot.shot_id in flagged for shot in scene.visual_plan)
        if last_end > 0 and start > last_end and owns_issue:
            new_end = last_end + (end - start)
            scene.timeline = format_timeline(last_end, new_end)
            last_end = new_end
            fixes += 1
        else:
            last_end = end
    return fixes


# ── Public API ────────────────────────────────────────────────────────────────


def auto_fix(
    document: Union[ScriptDocument, Dict[str, Any]],
    issues: Sequence[AnalysisIssue],
) -> Tuple[ScriptDocument, int]:
    """Apply every fix available for *issues* to a copy of *document*.

    Returns:
        (fixed_document, fixes_applied); the input document is never mutated.
    """
    doc = coerce_document(document)
    fixes = 0

    for issue in issues:
        fixer = _FIXERS.get(issue.type)
        shot = doc.find_shot(issue.shot_id)
        if fixer is None or shot is None:
            continue
        fixes += fixer(shot, issue)

    timeline = [i for i in issues if i.type is IssueType.TIMELINE and i.is_fixable]
    if timeline:
        fixes += _fix_timelines(doc, timeline)
    return doc, fixes
