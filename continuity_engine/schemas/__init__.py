"""Versioned document and report loaders."""

from continuity_engine.schemas.document_v1 import (
    coerce_document,
    document_to_dict,
    dump_document,
    load_document,
    validate_document,
)
from continuity_engine.schemas.report_v1 import dump_result, load_result

__all__ = [
    "coerce_document",
    "load_document",
    "dump_document",
    "document_to_dict",
    "validate_document",
    "load_result",
    "dump_result",
]
