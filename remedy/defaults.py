"""Stabilization default catalog.

Values fill in missing continuity metadata; ``*_FILL`` tables only apply to
absent keys, ``*_FORCE`` tables always overwrite.  Everything here is
immutable; the stabilizer copies values out before assigning them.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping, Tuple

CLEAN_CAPTURE_CLAUSE = (
    "Photographic digital capture — clean sensor look, neutral color (Rec709/ACES-like), "
    "no vintage effects, no film grain, no anime, no manga, no cel shading, no toon."
)
CAPTURE_CLAUSE_PREFIX = "Photographic digital capture"

ENVIRONMENT_FILL: Mapping[str, Any] = MappingProxyType({
    "location": "secret garden path",
    "time_of_day": "late afternoon",
})
ENVIRONMENT_MODIFICATIONS = "minor only (≤10%)"

CAMERA_FILL: Mapping[str, Any] = MappingProxyType({
    "stabilization": "strong",
    "rolling_shutter_correction": True,
    "focus_mode": "continuous",
    "aperture": "f/4.0",
    "shutter": "1/120",
    "iso": "base",
    "auto_exposure": False,
    "motion_blur": "off",
})

LIGHTING_STYLE = "dynamic, contrasty but realistic"
LIGHTING_FORCE: Mapping[str, Any] = MappingProxyType({
    "exposure": "locked midtone",
    "reference": "previous_scene",
    "variation": "0.1",
    "white_balance": "5600K",
})
LIGHTING_LOCK_FILL: Mapping[str, Any] = MappingProxyType({
    "exposure_lock": True,
    "contrast_match": "inherit",
    "light_direction_lock": "southwest",
    "shadow_persistence": True,
})

DEFAULT_POSE = "natural, non-anthropomorphic posture"

MOTION_CONSTRAINTS: Tuple[str, ...] = (
    "no anthropomorphic posture",
    "no exaggerated squash/stretch",
    "no collision with camera",
    "no random zooms or reframing",
)

COLOR_SPACE = "Rec709"
NEGATIVE_PROMPTS: Tuple[str, ...] = (
    "low quality",
    "blurry",
    "watermark",
    "glowing outlines",
    "random color shift",
    "new environment",
    "reset wardrobe",
)

GLOBAL_SEED = 3001
CHARACTER_SEED_BASE = 1001
PROP_SEED_BASE = 2001

SCREEN_DIRECTION = "lock_left_to_right"

CONTINUITY_ANCHOR = "inherit from previous shot"
CONTINUITY_REFERENCE = "prev"

STATE_PERSISTENCE: Tuple[str, ...] = ("wet_fur", "mud_stains", "exhaustion")
