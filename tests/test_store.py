import asyncio
import json

import pytest

from pagemarker import store as store_module
from pagemarker.store import RULES_KEY, JsonRuleStore, RuleStoreError

RULE = {
    "id": "r1",
    "patterns": ["https://example.com/*"],
    "highlights": [{"id": "h1", "type": "regex", "value": "foo"}],
}


def test_missing_file_is_an_empty_rule_list(store):
    assert asyncio.run(store.load()) == []


def test_load_validates_stored_rules(store, rules_file):
    rules_file([RULE, {"id": "broken"}])
    (rule,) = asyncio.run(store.load())
    assert rule.id == "r1"


def test_unreadable_file_raises(store):
    store.path.write_text("[1, 2", encoding="utf-8")
    with pytest.raises(RuleStoreError):
        asyncio.run(store.load())


def test_non_object_file_raises(store):
    store.path.write_text("[]", encoding="utf-8")
    with pytest.raises(RuleStoreError):
        asyncio.run(store.load())


def test_save_writes_under_rules_key_and_notifies(store):
    seen = []
    unsubscribe = store.subscribe(seen.append)

    asyncio.run(store.save([RULE]))

    assert json.loads(store.path.read_text(encoding="utf-8")) == {RULES_KEY: [RULE]}
    assert seen == [[RULE]]

    unsubscribe()
    unsubscribe()
    asyncio.run(store.save([]))
    assert seen == [[RULE]]


def test_failing_listener_does_not_stop_others(store):
    seen = []

    def broken(raw):
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(seen.append)
    asyncio.run(store.save([RULE]))
    assert seen == [[RULE]]


def test_save_creates_parent_directories(tmp_path):
    nested = JsonRuleStore(tmp_path / "a" / "b" / "rules.json")
    asyncio.run(nested.save([RULE]))
    assert asyncio.run(nested.load_raw()) == [RULE]


def test_get_store_uses_configured_path(monkeypatch, tmp_path):
    monkeypatch.setattr(store_module, "_store", None)
    monkeypatch.setattr(store_module.settings, "rules_path", str(tmp_path / "configured.json"))
    first = store_module.get_store()
    assert first.path == tmp_path / "configured.json"
    assert store_module.get_store() is first
