"""Character definition consolidation: first appearance is the master."""

import copy

from continuity_engine.analysis.models import ScriptDocument
from remedy import consolidate_characters
from remedy.consolidate import master_definitions


def _char(char_id, **appearance):
    return {"id": char_id, "appearance": appearance}


def _doc():
    return {"script": [
        {"visualPlan": [
            {"shotId": "s1", "character_definitions": [_char("char_a", fur_color="brown")]},
            {"shotId": "s2"},
        ]},
        {"visualPlan": [
            {"shotId": "s3", "character_definitions": [
                _char("char_a", fur_color="white"),
                _char("char_b", eyes="green"),
            ]},
            {"shotId": "s4", "character_definitions": [_char("char_b", eyes="blue")]},
            {"shotId": "s5", "character_definitions": [_char("char_a", fur_color="brown")]},
        ]},
    ]}


def _appearance(doc, shot_id):
    return [c.appearance for c in doc.find_shot(shot_id).character_definitions]


class TestConsolidateCharacters:

    def test_later_definitions_replaced_by_master(self):
        doc, changed = consolidate_characters(_doc())
        assert _appearance(doc, "s3") == [{"fur_color": "brown"}, {"eyes": "green"}]
        assert _appearance(doc, "s4") == [{"eyes": "green"}]
        assert changed == 2

    def test_matching_definitions_not_counted(self):
        doc, _ = consolidate_characters(_doc())
        assert _appearance(doc, "s5") == [{"fur_color": "brown"}]

    def test_masters_in_reading_order(self):
        masters = master_definitions(ScriptDocument.model_validate(_doc()))
        assert list(masters) == ["char_a", "char_b"]
        assert masters["char_b"].appearance == {"eyes": "green"}

    def test_idempotent(self):
        once, _ = consolidate_characters(_doc())
        twice, changed = consolidate_characters(once)
        assert changed == 0
        assert master_definitions(twice).keys() == master_definitions(once).keys()
        assert twice.model_dump() == once.model_dump()

    def test_replacements_are_independent_copies(self):
        doc, _ = consolidate_characters(_doc())
        doc.find_shot("s3").character_definitions[0].appearance["fur_color"] = "grey"
        assert _appearance(doc, "s1") == [{"fur_color": "brown"}]

    def test_input_not_mutated(self):
        raw = _doc()
        before = copy.deepcopy(raw)
        consolidate_characters(raw)
        assert raw == before

    def test_no_characters(self):
        doc, changed = consolidate_characters({"script": [{"visualPlan": [{"shotId": "s1"}]}]})
        assert changed == 0
        assert doc.find_shot("s1").character_definitions is None
