# Remedy — fixes, stabilization and patches for script documents
from .autofix import auto_fix
from .consolidate import consolidate_characters
from .contract import apply_json_patch, apply_suggestion_template
from .document_io import load_document_file, save_document
from .stabilize import stabilize_document, stabilize_shot

__all__ = [
    "auto_fix",
    "consolidate_characters",
    "stabilize_shot",
    "stabilize_document",
    "apply_json_patch",
    "apply_suggestion_template",
    "load_document_file",
    "save_document",
]
