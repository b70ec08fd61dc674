"""
document_io.py — Load and save script documents as JSON files.

Documents are written with sorted keys and consistent indentation so that
identical documents always produce byte-identical files (deterministic).
"""

import json

from continuity_engine.analysis.models import ScriptDocument
from continuity_engine.schemas.document_v1 import document_to_dict


def load_document_file(path: str) -> ScriptDocument:
    """Load a script document from a JSON file.

    Raises:
        ValueError: If the file does not exist (chained from FileNotFoundError).
        json.JSONDecodeError: If the file is not valid JSON.
        pydantic.ValidationError: If the JSON is not a script document.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise ValueError(f"Script document not found: {path}") from exc
    return ScriptDocument.model_validate(data)


def save_document(path: str, document: ScriptDocument) -> None:
    """Save a script document to a JSON file.

    Keys are sorted at every level and indentation is fixed at 2 spaces so
    that repeated saves of the same document produce identical bytes.
    """
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document_to_dict(document), f, sort_keys=True, indent=2, ensure_ascii=False)
        f.write("\n")
