# Continuity Engine — script continuity linting for generative-video pipelines
from continuity_engine.analysis import (
    AnalysisIssue,
    AnalysisResult,
    IssueSeverity,
    IssueType,
    ScriptDocument,
    Shot,
    analyze,
)
from continuity_engine.export import build_export_record, render_export_record

__all__ = [
    "analyze",
    "build_export_record",
    "render_export_record",
    "AnalysisIssue",
    "AnalysisResult",
    "IssueSeverity",
    "IssueType",
    "ScriptDocument",
    "Shot",
]
