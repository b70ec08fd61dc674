"""Analysis entry point: run every detector, merge continuity signals, count.

Public entry point
------------------
    analyze(document) -> AnalysisResult

``analyze`` is pure and deterministic.  It never mutates the caller's
document and never raises for bad input: a malformed document yields a zeroed
result so that callers can always render something.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from pydantic import ValidationError

from continuity_engine.analysis.continuity import (
    detect_advanced_continuity,
    detect_cinematography_and_lighting_errors,
    detect_comprehensive_spatial_and_temporal_errors,
    detect_continuity_issues,
    detect_spatial_and_prop_continuity,
)
from continuity_engine.analysis.detectors import (
    detect_character_issues,
    detect_character_locks,
    detect_location_issues,
    detect_physics_errors,
    detect_plot_inconsistencies,
    detect_sfx_issues,
    detect_timeline_issues,
)
from continuity_engine.analysis.models import (
    AnalysisIssue,
    AnalysisResult,
    AnalysisStats,
    IssueSeverity,
    IssueType,
    ScriptDocument,
    Shot,
    render_patch,
)
from continuity_engine.analysis.rules import CONTINUITY_MERGE_THRESHOLD
from continuity_engine.schemas.document_v1 import coerce_document

logger = logging.getLogger(__name__)

CONTINUITY_MERGE_TYPES = frozenset({
    IssueType.CAMERA,
    IssueType.LIGHTING,
    IssueType.CONTINUITY,
    IssueType.PROP,
    IssueType.SPATIAL,
})

_LINE_COMMENT_RE = re.compile(r"\s*//.*")


# ── Detector run ──────────────────────────────────────────────────────────────


def run_detectors(document: ScriptDocument) -> List[AnalysisIssue]:
    """Run every detector and concatenate issues in fixed detector order."""
    shots = document.all_shots()
    return [
        *detect_physics_errors(shots),
        *detect_character_issues(shots),
        *detect_location_issues(shots),
        *detect_timeline_issues(document.script),
        *detect_plot_inconsistencies(shots),
        *detect_character_locks(shots),
        *detect_sfx_issues(shots),
        *detect_continuity_issues(shots),
        *detect_advanced_continuity(shots),
        *detect_spatial_and_prop_continuity(shots),
        *detect_comprehensive_spatial_and_temporal_errors(shots),
        *detect_cinematography_and_lighting_errors(shots),
    ]


# ── Continuity merge ──────────────────────────────────────────────────────────


def issue_patch(issue: AnalysisIssue) -> Optional[Dict[str, Any]]:
    """Structured patch carried by *issue*.

    Issues built by the detectors carry their patch as data.  Issues that only
    have suggestion text (e.g. reloaded from a serialized report) are parsed
    after stripping ``//`` line comments; text that is not a JSON object yields
    None.
    """
    if issue.patch is not None:
        return issue.patch
    text = issue.suggestion.strip()
    if not text.startswith("{"):
        return None
    try:
        parsed = json.loads(_LINE_COMMENT_RE.sub("", text))
    except ValueError:
        logger.debug("Skipping unparsable suggestion on issue %s", issue.id)
        return None
    return parsed if isinstance(parsed, dict) else None


def merge_patches(patches: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge patches key by key: mappings merge one level deep, anything else overwrites."""
    combined: Dict[str, Any] = {}
    for patch in patches:
        for key, value in patch.items():
            current = combined.get(key)
            if isinstance(value, dict) and isinstance(current, dict):
                combined[key] = {**current, **value}
            else:
                combined[key] = value
    return combined


def _continuity_patch_issue(shot_id: str, merged: Dict[str, Any]) -> AnalysisIssue:
    patch = {"continuity_patch": merged}
    return AnalysisIssue(
        id=f"{shot_id}-continuity-patch",
        type=IssueType.CONTINUITY,
        severity=IssueSeverity.CRITICAL,
        shot_id=shot_id,
        message="Several continuity defects found. A combined patch is proposed.",
        suggestion=render_patch(patch),
        patch=patch,
    )


def merge_continuity_issues(issues: Sequence[AnalysisIssue]) -> List[AnalysisIssue]:
    """Group issues by shot and collapse dense continuity signals.

    A shot with CONTINUITY_MERGE_THRESHOLD or more issues in
    CONTINUITY_MERGE_TYPES gets one synthetic Critical Continuity issue in
    their place; its other issues are kept unchanged.  Groups keep the order in
    which each shot first appears.
    """
    by_shot: Dict[str, List[AnalysisIssue]] = {}
    for issue in issues:
        by_shot.setdefault(issue.shot_id, []).append(issue)

    final: List[AnalysisIssue] = []
    for shot_id, shot_issues in by_shot.items():
        continuity = [i for i in shot_issues if i.type in CONTINUITY_MERGE_TYPES]
        if len(continuity) < CONTINUITY_MERGE_THRESHOLD:
            final.extend(shot_issues)
            continue
        patches = [p for p in (issue_patch(i) for i in continuity) if p is not None]
        final.append(_continuity_patch_issue(shot_id, merge_patches(patches)))
        final.extend(i for i in shot_issues if i.type not in CONTINUITY_MERGE_TYPES)
    return final


# ── Statistics ────────────────────────────────────────────────────────────────


def summarize(issues: Sequence[AnalysisIssue], shots: Sequence[Shot]) -> AnalysisResult:
    counts: Dict[IssueType, int] = {issue_type: 0 for issue_type in IssueType}
    for issue in issues:
        counts[issue.type] += 1

    critical = [issue for issue in issues if issue.is_critical]
    blocked_shots = {issue.shot_id for issue in critical}
    stats = AnalysisStats(
        total_shots=len(shots),
        veo3_ready=len(shots) - len(blocked_shots),
        critical_issues=len(critical),
        warnings=sum(1 for issue in issues if issue.severity is IssueSeverity.WARNING),
    )
    return AnalysisResult(
        stats=stats,
        issue_counts=counts,
        issues=list(issues),
        shots=[shot.model_copy(deep=True) for shot in shots],
    )


# ── Public API ────────────────────────────────────────────────────────────────


def analyze(document: Union[ScriptDocument, Dict[str, Any]]) -> AnalysisResult:
    """Analyze *document* and return its AnalysisResult.

    Malformed input (root not a mapping, ``script`` missing or not a list,
    a record missing a required field) returns a zeroed result.
    """
    try:
        doc = coerce_document(document)
    except (ValueError, ValidationError) as exc:
        logger.error("Invalid script document provided to analysis: %s", exc)
        return AnalysisResult()

    raw_issues = run_detectors(doc)
    issues = merge_continuity_issues(raw_issues)
    logger.debug("Analysis found %d issues (%d after continuity merge)", len(raw_issues), len(issues))
    return summarize(issues, doc.all_shots())
