"""Script document and analysis report models.

Every document record allows extra fields (extra="allow") so that author data
the engine does not know about survives every transform untouched.  Optional
fields default to None, which means "unspecified" and is distinct from False;
documents are dumped with exclude_none=True so unspecified fields stay absent
on the wire.  Wire names keep the camelCase keys of the production format
(shotId, compositionPrompt, visualPlan ...) via aliases.

Free-form author fields that detectors only read loosely (scale, seed, xy,
state_persistence, prop_state_override) are typed Any so a value of an
unexpected shape is carried through rather than rejecting the document.
"""
from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Record(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


# ── Script document ───────────────────────────────────────────────────────────


class CharacterDefinition(_Record):
    """A character as it appears in one shot; ``id`` is the identity key."""

    id: str
    appearance: Dict[str, Any] = Field(default_factory=dict)
    scale: Any = None
    position: Optional[str] = None
    pose: Optional[str] = None
    seed: Any = None


class PropDefinition(_Record):
    id: str
    type: Optional[str] = None
    appearance: Optional[Any] = None
    continuity: Optional[str] = None
    seed: Any = None


class LocationRef(_Record):
    id: Optional[str] = None


class AudioSync(_Record):
    sfx: Optional[List[str]] = None


class ShotSync(_Record):
    """Camera, lighting and audio sync block of a shot."""

    duration: Optional[str] = None
    camera: Optional[Dict[str, Any]] = None
    lighting: Optional[Dict[str, Any]] = None
    audio: Optional[AudioSync] = None


class ContinuitySettings(_Record):
    scene_anchor: Optional[str] = None
    reference_scene: Optional[str] = None
    environment_inherit: Optional[bool] = None
    lighting_inherit: Optional[bool] = None
    character_state_inherit: Optional[List[str]] = None
    prop_state_inherit: Optional[List[str]] = None


class Anchor(_Record):
    xy: Any = None


class Shot(_Record):
    """One generation prompt plus its structured metadata.

    All continuity-lock flags are optional; None means the author did not
    specify them.
    """

    shot_id: str = Field(alias="shotId")
    composition_prompt: str = Field(default="", alias="compositionPrompt")
    character_definitions: Optional[List[CharacterDefinition]] = None
    location: Optional[LocationRef] = None
    sync: Optional[ShotSync] = None
    environment: Optional[Dict[str, Any]] = None
    animation: Optional[Dict[str, Any]] = None
    technical: Optional[Dict[str, Any]] = None
    props: Optional[List[PropDefinition]] = None
    props_reference: Optional[List[str]] = None
    continuity: Optional[ContinuitySettings] = None

    prop_state_override: Any = None
    anchors: Optional[Dict[str, Anchor]] = None
    screen_direction: Optional[str] = None
    parallax_lock: Optional[bool] = None

    # spatial
    anchors_inherit: Optional[bool] = None
    prop_lock: Optional[List[str]] = None
    scale_inherit: Optional[bool] = None
    scale_variation: Optional[str] = None
    geometry_lock: Optional[bool] = None

    # temporal
    state_persistence: Any = None
    state_decay_rate: Optional[str] = None
    auto_sync_audio: Optional[bool] = None
    audio_latency_correction: Optional[str] = None

    # camera
    camera_axis_lock: Optional[bool] = None
    mirror_flip: Optional[bool] = None
    lens_match_previous: Optional[bool] = Field(default=None, alias="lens.match_previous")
    lens_variation: Optional[str] = None
    camera_height_lock: Optional[bool] = None
    eye_line_match: Optional[str] = None

    # lighting
    white_balance_variation: Optional[str] = None
    exposure_lock: Optional[bool] = None
    contrast_match: Optional[str] = None
    light_direction_lock: Optional[str] = None
    shadow_persistence: Optional[bool] = None

    # physics
    physics_gravity_lock: Optional[bool] = None
    collision_refinement: Optional[bool] = None
    reflection_consistency: Optional[bool] = None
    reflection_ref: Optional[str] = None

    # narrative
    emotion_curve: Optional[str] = None
    emotion_inherit: Optional[bool] = None

    @property
    def characters(self) -> List[CharacterDefinition]:
        return self.character_definitions or []

    @property
    def prompt_lower(self) -> str:
        return self.composition_prompt.lower()

    @property
    def declared_sfx(self) -> List[str]:
        if self.sync is None or self.sync.audio is None:
            return []
        return list(self.sync.audio.sfx or [])


class Scene(_Record):
    """Ordered group of shots sharing a ``"M:SS - M:SS"`` timeline window."""

    timeline: Optional[str] = None
    host_dialogue: Optional[str] = Field(default=None, alias="hostDialogue")
    visual_plan: List[Shot] = Field(default_factory=list, alias="visualPlan")

    @field_validator("visual_plan", mode="before")
    @classmethod
    def _null_plan(cls, value: Any) -> Any:
        return [] if value is None else value


class ScriptDocument(_Record):
    """Top-level script: scenes in screen-time order."""

    script: List[Scene]

    def all_shots(self) -> List[Shot]:
        """Flatten every scene's visual plan in reading order."""
        return [shot for scene in self.script for shot in scene.visual_plan]

    def find_shot(self, shot_id: str) -> Optional[Shot]:
        for shot in self.all_shots():
            if shot.shot_id == shot_id:
                return shot
        return None


# ── Analysis report ───────────────────────────────────────────────────────────


class IssueType(str, Enum):
    PHYSICS = "Physics"
    CHARACTER = "Character"
    LOCATION = "Location"
    TIMELINE = "Timeline"
    PLOT = "Plot"
    CHARACTER_LOCK = "CharacterLock"
    SFX = "Sfx"
    CONTINUITY = "Continuity"
    PROP = "Prop"
    LIGHTING = "Lighting"
    CAMERA = "Camera"
    SPATIAL = "Spatial"
    NARRATIVE = "Narrative"


class IssueSeverity(str, Enum):
    CRITICAL = "Critical"
    WARNING = "Warning"


class AnalysisIssue(BaseModel):
    """A single defect attached to one shot.

    ``patch`` carries a structured correction as data.  When present,
    ``suggestion`` is the rendered JSON text of that patch.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: IssueType
    severity: IssueSeverity
    shot_id: str = Field(alias="shotId")
    message: str
    suggestion: str = ""
    is_fixable: bool = Field(default=False, alias="isFixable")
    patch: Optional[Dict[str, Any]] = None
    details: Optional[Dict[str, Any]] = None
    suggestion_template: Optional[str] = None
    original_prompt: Optional[str] = Field(default=None, alias="originalPrompt")

    @property
    def is_critical(self) -> bool:
        return self.severity is IssueSeverity.CRITICAL


def render_patch(patch: Dict[str, Any]) -> str:
    """Render a structured patch as the suggestion text shown to authors."""
    return json.dumps(patch, indent=2, ensure_ascii=False)


class AnalysisStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_shots: int = Field(default=0, alias="totalShots")
    veo3_ready: int = Field(default=0, alias="veo3Ready")
    critical_issues: int = Field(default=0, alias="criticalIssues")
    warnings: int = 0


def _zero_counts() -> Dict[IssueType, int]:
    return {issue_type: 0 for issue_type in IssueType}


class AnalysisResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    stats: AnalysisStats = Field(default_factory=AnalysisStats)
    issue_counts: Dict[IssueType, int] = Field(default_factory=_zero_counts, alias="issueCounts")
    issues: List[AnalysisIssue] = Field(default_factory=list)
    shots: List[Shot] = Field(default_factory=list)

    def issues_for(self, shot_id: str) -> List[AnalysisIssue]:
        return [issue for issue in self.issues if issue.shot_id == shot_id]

    def fixable_issues(self) -> List[AnalysisIssue]:
        return [issue for issue in self.issues if issue.is_fixable]
