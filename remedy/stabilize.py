"""
stabilize.py — per-shot default filling and the bulk stabilize action.

stabilize_shot      — normalize one shot; returns (shot, None) or (None, error).
stabilize_document  — consolidate characters, then stabilize every shot.

Fill semantics: a value the author already set is kept unless the field is
listed in one of the ``*_FORCE`` tables or is documented below as forced.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from continuity_engine.analysis.continuity import prop_tokens
from continuity_engine.analysis.models import ContinuitySettings, ScriptDocument, Shot, ShotSync
from continuity_engine.schemas.document_v1 import coerce_document

from . import defaults
from .consolidate import consolidate_characters

logger = logging.getLogger(__name__)

_CAPTURE_TAIL_RE = re.compile(re.escape(defaults.CAPTURE_CLAUSE_PREFIX) + r".*$", re.DOTALL)


def _first_set(*values: Any, default: Any) -> Any:
    """First value that is not None, else *default*."""
    for value in values:
        if value is not None:
            return value
    return default


def _union(existing: Optional[Sequence[str]], extra: Sequence[str]) -> List[str]:
    """Existing items first, then missing *extra* items; no duplicates."""
    return list(dict.fromkeys([*(existing or []), *extra]))


def stabilized_prompt(prompt: str) -> str:
    """Replace any trailing capture clause with the canonical clean-capture clause."""
    core = _CAPTURE_TAIL_RE.sub("", prompt).strip()
    return f"{core} {defaults.CLEAN_CAPTURE_CLAUSE}" if core else defaults.CLEAN_CAPTURE_CLAUSE


# ── Sub-record fillers ────────────────────────────────────────────────────────


def _environment(shot: Shot) -> Dict[str, Any]:
    env = dict(shot.environment or {})
    merged = {**defaults.ENVIRONMENT_FILL, **env, "inherit": True}
    merged["modifications"] = env.get("modifications") or defaults.ENVIRONMENT_MODIFICATIONS
    return merged


def _camera(shot: Shot, camera: Dict[str, Any]) -> Dict[str, Any]:
    # Top-level lock flags fold into the camera record and win over it.
    return {
        **defaults.CAMERA_FILL,
        **camera,
        "lens.match_previous": _first_set(
            camera.get("lens.match_previous"), shot.lens_match_previous, default=True
        ),
        "camera_axis_lock": _first_set(shot.camera_axis_lock, camera.get("camera_axis_lock"), default=True),
        "camera_height_lock": _first_set(
            shot.camera_height_lock, camera.get("camera_height_lock"), default=True
        ),
    }


def _lighting(shot: Shot, lighting: Dict[str, Any]) -> Dict[str, Any]:
    merged = {"style": defaults.LIGHTING_STYLE, **lighting, **defaults.LIGHTING_FORCE}
    for key, default in defaults.LIGHTING_LOCK_FILL.items():
        merged[key] = _first_set(getattr(shot, key), lighting.get(key), default=default)
    return merged


def _technical(shot: Shot) -> Dict[str, Any]:
    tech = dict(shot.technical or {})
    tech["color_space"] = defaults.COLOR_SPACE
    tech["no_LUT"] = True
    tech["negative_prompts"] = _union(tech.get("negative_prompts"), defaults.NEGATIVE_PROMPTS)
    tech["seed"] = tech.get("seed") or defaults.GLOBAL_SEED
    return tech


def _continuity(shot: Shot) -> ContinuitySettings:
    base = {
        "scene_anchor": defaults.CONTINUITY_ANCHOR,
        "reference_scene": defaults.CONTINUITY_REFERENCE,
        "environment_inherit": True,
        "lighting_inherit": True,
        "character_state_inherit": [char.id for char in shot.characters],
        "prop_state_inherit": [prop.id for prop in shot.props or []],
    }
    own = shot.continuity.model_dump(exclude_none=True) if shot.continuity else {}
    return ContinuitySettings.model_validate({**base, **own})


# ── Public API ────────────────────────────────────────────────────────────────


def _stabilize(shot: Shot) -> Shot:
    shot = shot.model_copy(deep=True)

    shot.composition_prompt = stabilized_prompt(shot.composition_prompt)
    shot.environment = _environment(shot)

    sync = shot.sync or ShotSync()
    sync.camera = _camera(shot, dict(sync.camera or {}))
    sync.lighting = _lighting(shot, dict(sync.lighting or {}))
    shot.sync = sync

    for index, char in enumerate(shot.characters):
        if index == 0 and char.scale is None:
            char.scale = 1.0
        if char.pose is None:
            char.pose = defaults.DEFAULT_POSE
        char.seed = char.seed or defaults.CHARACTER_SEED_BASE + index

    animation = dict(shot.animation or {})
    animation["motion_constraints"] = _union(animation.get("motion_constraints"), defaults.MOTION_CONSTRAINTS)
    shot.animation = animation

    if shot.physics_gravity_lock is None:
        shot.physics_gravity_lock = True
    if shot.collision_refinement is None:
        shot.collision_refinement = True

    shot.technical = _technical(shot)

    for index, prop in enumerate(shot.props or []):
        prop.seed = prop.seed or defaults.PROP_SEED_BASE + index
        prop.continuity = "persistent"
    refs = sorted(set(shot.props_reference or []) | set(prop_tokens(shot.composition_prompt)))
    shot.props_reference = refs or None

    shot.screen_direction = shot.screen_direction or defaults.SCREEN_DIRECTION
    if shot.parallax_lock is None:
        shot.parallax_lock = True
    shot.anchors = shot.anchors or {}

    shot.continuity = _continuity(shot)
    if shot.state_persistence is None:
        shot.state_persistence = list(defaults.STATE_PERSISTENCE)

    # folded into sync.camera / sync.lighting above
    shot.exposure_lock = None
    shot.camera_axis_lock = None
    return shot


def stabilize_shot(shot: Union[Shot, Dict[str, Any]]) -> Tuple[Optional[Shot], Optional[str]]:
    """Return a stabilized copy of *shot*.

    Returns:
        (new_shot, None)  — stabilization succeeded; *shot* is not modified.
        (None, message)   — stabilization failed; the failure is logged.
    """
    shot_id = shot.shot_id if isinstance(shot, Shot) else (shot.get("shotId") if isinstance(shot, dict) else None)
    try:
        if not isinstance(shot, Shot):
            shot = Shot.model_validate(shot)
        return _stabilize(shot), None
    except Exception as exc:  # noqa: BLE001
        logger.exception("Stabilization failed for shot %s", shot_id)
        return None, f"STABILIZE_FAILED: {shot_id}: {exc}"


def _shot_dump(shot: Shot) -> Dict[str, Any]:
    return shot.model_dump(mode="json", by_alias=True, exclude_none=True)


def stabilize_document(
    document: Union[ScriptDocument, Dict[str, Any]],
) -> Tuple[ScriptDocument, int, int]:
    """Consolidate character definitions, then stabilize every shot.

    A shot whose stabilization fails is kept unchanged.

    Returns:
        (new_document, shots_stabilized, definitions_consolidated) where
        shots_stabilized counts shots whose serialized form changed.
    """
    doc, consolidated = consolidate_characters(coerce_document(document))

    stabilized = 0
    for scene in doc.script:
        for position, shot in enumerate(scene.visual_plan):
            fixed, _error = stabilize_shot(shot)
            if fixed is None:
                continue
            if _shot_dump(fixed) != _shot_dump(shot):
                stabilized += 1
            scene.visual_plan[position] = fixed

    logger.info(
        "Stabilized %d shots, consolidated %d character definitions", stabilized, consolidated
    )
    return doc, stabilized, consolidated
