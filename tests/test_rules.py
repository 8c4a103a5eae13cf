from pagemarker.rules import dump_rules, normalize_rules
from pagemarker.schemas import MatchType


def _raw_rule(**overrides):
    rule = {
        "id": "r1",
        "patterns": ["https://example.com/*"],
        "highlights": [
            {
                "id": "h1",
                "type": "whole-phrase",
                "value": "foo",
                "textColor": "#111111",
                "backgroundColor": "#eeeeee",
                "bold": True,
                "italic": False,
                "underline": False,
                "ignoreCase": True,
            }
        ],
    }
    rule.update(overrides)
    return rule


def test_well_formed_rule_is_kept():
    (rule,) = normalize_rules([_raw_rule()])
    assert rule.id == "r1"
    assert rule.patterns == ("https://example.com/*",)
    assert rule.disabled is False
    entry = rule.highlights[0]
    assert entry.type is MatchType.WHOLE_PHRASE
    assert entry.ignore_case is True
    assert entry.bold is True
    assert entry.text_color == "#111111"


def test_non_list_value_yields_no_rules():
    assert normalize_rules(None) == []
    assert normalize_rules({"id": "r1"}) == []
    assert normalize_rules("rules") == []


def test_malformed_rules_are_dropped_silently():
    raw = [
        "not a rule",
        _raw_rule(id=7),
        _raw_rule(id="no-patterns", patterns=[]),
        _raw_rule(id="blank-patterns", patterns=["  "]),
        _raw_rule(id="no-highlights", highlights=[]),
        _raw_rule(id="patterns-not-list", patterns="https://example.com/*"),
        _raw_rule(id="ok"),
    ]
    assert [r.id for r in normalize_rules(raw)] == ["ok"]


def test_malformed_entries_are_dropped_individually():
    raw = _raw_rule(
        highlights=[
            {"id": "bad-type", "type": "fuzzy", "value": "x"},
            {"id": "no-value", "type": "regex"},
            "nonsense",
            {"id": "good", "type": "regex", "value": "x+"},
        ]
    )
    (rule,) = normalize_rules([raw])
    assert [e.id for e in rule.highlights] == ["good"]


def test_rule_with_only_malformed_entries_is_dropped():
    raw = _raw_rule(highlights=[{"id": "bad", "type": "fuzzy", "value": "x"}])
    assert normalize_rules([raw]) == []


def test_flags_of_wrong_type_default_to_false():
    raw = _raw_rule(
        disabled="yes",
        highlights=[{"id": "h", "type": "regex", "value": "x", "ignoreCase": "true", "bold": 1}],
    )
    (rule,) = normalize_rules([raw])
    assert rule.disabled is False
    assert rule.highlights[0].ignore_case is False
    assert rule.highlights[0].bold is False


def test_missing_colors_get_defaults():
    raw = _raw_rule(highlights=[{"id": "h", "type": "regex", "value": "x", "textColor": ""}])
    entry = normalize_rules([raw])[0].highlights[0]
    assert entry.text_color == "#000000"
    assert entry.background_color == "#ffff00"


def test_dump_uses_stored_field_names():
    (dumped,) = dump_rules(normalize_rules([_raw_rule(createdAt="2024-01-01")]))
    assert dumped["createdAt"] == "2024-01-01"
    assert "updatedAt" not in dumped
    assert dumped["highlights"][0]["ignoreCase"] is True
    assert dumped["highlights"][0]["type"] == "whole-phrase"
    assert normalize_rules([dumped])[0].highlights[0].value == "foo"
