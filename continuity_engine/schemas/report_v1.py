"""AnalysisResult report v1 — load and canonical dump."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Union

from continuity_engine.analysis.models import AnalysisResult
from continuity_engine.schemas.document_v1 import read_source


def load_result(source: Union[str, bytes, dict, Path]) -> AnalysisResult:
    """Read back a report written by dump_result (Path, JSON text or dict)."""
    return AnalysisResult.model_validate(read_source(source))


def dump_result(result: AnalysisResult, *, indent: int = 2) -> str:
    """Serialize an AnalysisResult to canonical JSON (sort_keys=True, indent=2).

    Issue order is preserved (lists are not sorted); only object keys are.
    """
    raw = result.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(raw, sort_keys=True, indent=indent, ensure_ascii=False)
