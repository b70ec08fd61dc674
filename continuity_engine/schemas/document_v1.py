"""Script document format, version 1: reading, writing and shape checks.

Dumps use the wire names (shotId, visualPlan ...) with sorted keys, so two
documents holding the same data serialize to the same bytes.
"""
from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import ValidationError

from continuity_engine.analysis.models import ScriptDocument

SCHEMA_VERSION = "1.0.0"


def read_source(source: Union[str, bytes, dict, Path]) -> Any:
    """Parsed JSON from a file Path or raw text; a dict passes through as is."""
    if isinstance(source, Path):
        with source.open(encoding="utf-8") as fh:
            return json.load(fh)
    if isinstance(source, (str, bytes)):
        return json.loads(source)
    return source


def load_document(source: Union[str, bytes, dict, Path]) -> ScriptDocument:
    """Build a ScriptDocument from a script file Path, raw JSON text, or a parsed dict.

    Unknown author fields are kept on every record.  A scene whose
    ``visualPlan`` is null loads with an empty plan.

    Raises:
        FileNotFoundError: *source* is a Path to a missing script file.
        ValidationError: a scene or shot does not fit the document model
            (for example a shot without ``shotId``).
    """
    return ScriptDocument.model_validate(read_source(source))


def document_to_dict(document: ScriptDocument) -> Dict[str, Any]:
    """Wire-format dict: camelCase aliases, unspecified fields omitted."""
    return document.model_dump(mode="json", by_alias=True, exclude_none=True)


def dump_document(document: ScriptDocument, *, indent: int = 2) -> str:
    """Serialize a ScriptDocument to canonical JSON (sort_keys=True, indent=2)."""
    return json.dumps(document_to_dict(document), sort_keys=True, indent=indent, ensure_ascii=False)


def validate_document(data: Any) -> List[str]:
    """Shape errors of a raw script document as `"<loc>: <msg>"` strings; [] when it loads."""
    if not isinstance(data, dict):
        return ["document must be a JSON object"]
    if not isinstance(data.get("script"), list):
        return ["script must be a list of scenes"]
    try:
        ScriptDocument.model_validate(data)
        return []
    except ValidationError as exc:
        return [f"{e['loc']}: {e['msg']}" for e in exc.errors()]


def coerce_document(document: Union[ScriptDocument, Dict[str, Any]]) -> ScriptDocument:
    """Return an independent ScriptDocument for *document* (never the caller's object).

    Raises:
        ValueError: the root is not a mapping or ``script`` is not a list.
        ValidationError: a record does not conform to the document model.
    """
    if isinstance(document, ScriptDocument):
        return document.model_copy(deep=True)
    if not isinstance(document, dict) or not isinstance(document.get("script"), list):
        raise ValueError("document must be a mapping with a 'script' list")
    return ScriptDocument.model_validate(copy.deepcopy(document))
