"""Keyword and rule tables used by the detectors.

All tables are immutable module-level data: no external state, no randomness.
Detectors only read them, so each rule family can be tested in isolation by
swapping the table argument.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

# ── Physics ───────────────────────────────────────────────────────────────────

FLIGHT_RE = re.compile(r"\b(fly|flies|flew|flying|soars|floats|hovers)\b", re.IGNORECASE)
FLIGHT_CAUSE_RE = re.compile(
    r"\b(jumps|falls|throws|leaps|wind|magic|levitates|is thrown)\b", re.IGNORECASE
)
# hovers is detected but never rewritten; "jumps and hovers" reads wrong
FLIGHT_FIX_RE = re.compile(r"\b(fly|flies|flew|flying|soars|floats)\b", re.IGNORECASE)
WATER_WALK_CONTEXT_RE = re.compile(r"(wade|shallow|frozen|ice)", re.IGNORECASE)

# ── Location ──────────────────────────────────────────────────────────────────

ILLOGICAL_JUMPS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "sewer": ("sky", "penthouse"),
    "underground": ("ocean", "desert"),
    "indoor": ("ocean", "desert"),
})
ABRUPT_JUMPS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "forest": ("cave",),
    "street": ("building",),
    "room": ("hallway",),
})

# ── Plot ──────────────────────────────────────────────────────────────────────

CAPTURED_FREE_ACTIONS: Tuple[str, ...] = ("walks freely", "explores", "runs")
HEALTHY_ACTIONS: Tuple[str, ...] = ("runs energetically", "jumps", "is healthy")
RESCUE_TRIGGERS: Tuple[str, ...] = ("is rescued", "is saved")
CAPTURE_TRIGGERS: Tuple[str, ...] = ("is captured", "is trapped")
INJURY_TRIGGERS: Tuple[str, ...] = ("is injured", "is hurt")
DEATH_TRIGGERS: Tuple[str, ...] = ("dies", "is killed")
PLOT_OBJECT_RE = re.compile(r"the (\w+ crystal|magic sword|ancient scroll)")

# ── Character lock ────────────────────────────────────────────────────────────

POSITION_WORDS_RE = re.compile(
    r"(left|right|center|foreground|background|beside|between|next to)", re.IGNORECASE
)


def character_lock_re(char_id: str) -> "re.Pattern[str]":
    """Bracket-wrapped reference to *char_id*: [id], {id}, (id) or <id>."""
    return re.compile(r"[\[{(<]" + re.escape(char_id) + r"[\])}>]")


# ── SFX ───────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SfxRule:
    keywords: Tuple[str, ...]
    sfx: str
    context: Optional[Tuple[str, ...]] = None


# Rules for the same keyword are tried in order; the first whose context word
# appears in the prompt wins, otherwise the context-free rule is the default.
SFX_RULES: Tuple[SfxRule, ...] = (
    SfxRule(("whip pan",), "sfx_camera_whip_pan_fast"),
    SfxRule(
        ("chasing", "chases", "darting", "scampers"),
        "sfx_light_scamper_grass",
        ("grass", "garden", "forest", "lawn", "lush"),
    ),
    SfxRule(
        ("chasing", "chases", "darting", "scampers"),
        "sfx_light_scamper_wood",
        ("wood", "floor", "rock"),
    ),
    SfxRule(("chasing", "chases", "darting", "scampers"), "sfx_light_scamper_generic"),
    SfxRule(
        ("jumps", "pounce", "hops"),
        "sfx_kitten_pounce_grass",
        ("grass", "lawn", "soft", "mossy"),
    ),
    SfxRule(("jumps", "pounce", "hops"), "sfx_light_impact_rock", ("rock", "stone", "path")),
    SfxRule(("jumps", "pounce", "hops"), "sfx_light_impact_wood"),
    SfxRule(("flies", "fly", "flutter", "dragonfly", "butterfly"), "sfx_wings_flutter_light"),
    SfxRule(("licking", "cleans"), "sfx_cat_licking_fur_light"),
    SfxRule(("nudge", "nudges"), "sfx_fabric_rustle_light", ("cloth", "fabric", "blanket")),
    SfxRule(("nudge", "nudges"), "sfx_fur_on_fur_rustle"),
)

LOW_QUALITY_SFX: frozenset = frozenset({
    "sfx_generic_footstep",
    "sfx_impact",
    "sfx_rustle",
    "sfx_generic_wing_flap",
})

# ── Continuity / spatial ──────────────────────────────────────────────────────

REQUIRED_COLOR_SPACE = "Rec709"
PROP_TOKEN_RE = re.compile(r"prop_[\w_]+")
PROP_STATE_KEYWORDS: Tuple[str, ...] = ("wet", "damp", "submerged", "broken", "dirty", "rain droplets")
PERSISTENT = "persistent"

ALARM_TRIGGERS: Tuple[str, ...] = ("crow appears", "sudden noise", "danger")
REACTION_KEYWORDS: Tuple[str, ...] = ("reacts", "looks up", "startled")
WET_KEYWORDS: Tuple[str, ...] = ("wet", "drenched")
DRY_KEYWORDS: Tuple[str, ...] = ("dry", "clean")

# ── Cinematography ────────────────────────────────────────────────────────────

MAX_FOCAL_LENGTH_DRIFT_MM = 10
MAX_WHITE_BALANCE_DRIFT_K = 300
DEFAULT_WHITE_BALANCE = "5600K"

CONTINUITY_MERGE_THRESHOLD = 3
