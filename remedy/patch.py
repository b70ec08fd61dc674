"""
patch.py — shot patch structural validation and pure application.

validate_patch  — checks shape only; knows nothing about the target shot.
apply_patch     — merges a validated patch into a shot; pure, no side-effects.
"""

import copy
from typing import Any, Dict, List

from continuity_engine.analysis.models import Shot

ShotPatch = Dict[str, Any]

CONTINUITY_PATCH_KEY = "continuity_patch"

# Identity of the shot cannot be patched.
_PROTECTED_KEYS = frozenset({"shotId", "shot_id"})


def unwrap_patch(patch: Any) -> Any:
    """Return the inner patch of a ``{"continuity_patch": {...}}`` wrapper."""
    if isinstance(patch, dict) and set(patch) == {CONTINUITY_PATCH_KEY}:
        return patch[CONTINUITY_PATCH_KEY]
    return patch


def validate_patch(patch: Any) -> List[str]:
    """Structural validation of a shot patch.

    Returns:
        List of error strings; empty list means the patch is structurally valid.
    """
    if not isinstance(patch, dict):
        return ["INVALID_PATCH: patch must be a JSON object"]
    if not patch:
        return ["INVALID_PATCH: patch is empty"]

    errors: List[str] = []
    protected = sorted(_PROTECTED_KEYS & set(patch))
    if protected:
        errors.append(f"INVALID_PATCH: protected keys cannot be patched: {protected}")
    non_str = [key for key in patch if not isinstance(key, str)]
    if non_str:
        errors.append("INVALID_PATCH: keys must be strings")
    return errors


def apply_patch(shot: Shot, patch: ShotPatch) -> Dict[str, Any]:
    """Merge *patch* into the wire form of *shot* and return the merged dict.

    Pure function — *shot* is never mutated.  Mappings merge one level deep
    into existing mappings; every other value overwrites.  The result is not
    validated; callers re-validate it as a Shot.
    """
    data = shot.model_dump(mode="json", by_alias=True, exclude_none=True)
    for key, value in patch.items():
        current = data.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            data[key] = {**current, **copy.deepcopy(value)}
        else:
            data[key] = copy.deepcopy(value)
    return data
