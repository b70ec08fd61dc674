"""Character definition consolidation.

The first appearance of a character id, in reading order, is its master
definition.  Every later definition of that id is replaced by a copy of the
master.
"""

from typing import Any, Dict, Tuple, Union

from continuity_engine.analysis.models import CharacterDefinition, ScriptDocument
from continuity_engine.schemas.document_v1 import coerce_document


def master_definitions(document: ScriptDocument) -> Dict[str, CharacterDefinition]:
    """Map each character id to its first definition in reading order."""
    masters: Dict[str, CharacterDefinition] = {}
    for shot in document.all_shots():
        for char in shot.characters:
            masters.setdefault(char.id, char)
    return masters


def consolidate_characters(
    document: Union[ScriptDocument, Dict[str, Any]],
) -> Tuple[ScriptDocument, int]:
    """Overwrite later character definitions with their master definition.

    Pure: the input document is never mutated.

    Returns:
        (new_document, shots_changed) where shots_changed counts shots in which
        at least one definition differed from its master.
    """
    doc = coerce_document(document)
    masters = master_definitions(doc)

    changed = 0
    for shot in doc.all_shots():
        if not shot.character_definitions:
            continue
        replaced = [masters[char.id].model_copy(deep=True) for char in shot.character_definitions]
        if [c.model_dump() for c in replaced] != [c.model_dump() for c in shot.character_definitions]:
            shot.character_definitions = replaced
            changed += 1
    return doc, changed
