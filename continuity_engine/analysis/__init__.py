"""Rule-detection pipeline and issue aggregation for script documents."""

from continuity_engine.analysis.aggregator import analyze
from continuity_engine.analysis.models import (
    AnalysisIssue,
    AnalysisResult,
    AnalysisStats,
    CharacterDefinition,
    IssueSeverity,
    IssueType,
    PropDefinition,
    Scene,
    ScriptDocument,
    Shot,
)

__all__ = [
    "analyze",
    "AnalysisIssue",
    "AnalysisResult",
    "AnalysisStats",
    "CharacterDefinition",
    "IssueSeverity",
    "IssueType",
    "PropDefinition",
    "Scene",
    "ScriptDocument",
    "Shot",
]
