import json
from typing import Any, Dict, List, Tuple, Union

from pydantic import ValidationError

from continuity_engine.analysis.models import ScriptDocument, Shot
from continuity_engine.schemas.document_v1 import coerce_document

from .patch import apply_patch, unwrap_patch, validate_patch

Document = Union[ScriptDocument, Dict[str, Any]]


def apply_json_patch(document: Document, shot_id: str, patch_text: str) -> Tuple[Document, List[str]]:
    """Apply a caller-supplied JSON patch to one shot of *document*.

    Pipeline:
      1. json.loads       — the text must parse
      2. validate_patch   — structural / shape checks
      3. find the shot    — shot_id must exist in the document
      4. apply_patch      — one-level merge, then re-validation as a Shot

    Returns:
        (new_document, [])      — patch accepted; new_document reflects it.
        (document,     errors)  — patch rejected; original document is returned unchanged.
    """
    try:
        parsed = json.loads(patch_text)
    except ValueError as exc:
        return (document, [f"INVALID_JSON: {exc}"])

    patch = unwrap_patch(parsed)
    errors = validate_patch(patch)
    if errors:
        return (document, errors)

    try:
        new_doc = coerce_document(document)
    except (ValueError, ValidationError) as exc:
        return (document, [f"INVALID_DOCUMENT: {exc}"])

    for scene in new_doc.script:
        for position, shot in enumerate(scene.visual_plan):
            if shot.shot_id != shot_id:
                continue
            try:
                scene.visual_plan[position] = Shot.model_validate(apply_patch(shot, patch))
            except ValidationError as exc:
                return (document, [f"INVALID_SHOT: {e['loc']}: {e['msg']}" for e in exc.errors()])
            return (new_doc, [])

    return (document, [f"SHOT_NOT_FOUND: {shot_id}"])


def apply_suggestion_template(document: Document, shot_id: str, template: str) -> Tuple[Document, List[str]]:
    """Append a detector's suggestion template to one shot's prompt.

    Returns:
        (new_document, [])                      — template applied.
        (document, ["SHOT_NOT_FOUND: <id>"])    — no such shot; nothing changed.
    """
    new_doc = coerce_document(document)
    shot = new_doc.find_shot(shot_id)
    if shot is None:
        return (document, [f"SHOT_NOT_FOUND: {shot_id}"])
    shot.composition_prompt = f"{shot.composition_prompt.strip()}{template}"
    return (new_doc, [])
