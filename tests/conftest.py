import itertools
import json

import pytest

from pagemarker.document import HtmlDocument
from pagemarker.dom import OwnNodePolicy
from pagemarker.schemas import HighlightEntry, HighlightRule, MatchType
from pagemarker.store import RULES_KEY, JsonRuleStore


class FakeHandle:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock: call_soon runs on run_soon(), call_later on advance()."""

    def __init__(self):
        self.now = 0.0
        self._soon = []
        self._timers = []

    def call_soon(self, callback):
        handle = FakeHandle(self.now, callback)
        self._soon.append(handle)
        return handle

    def call_later(self, delay, callback):
        handle = FakeHandle(self.now + delay, callback)
        self._timers.append(handle)
        return handle

    @property
    def live_timers(self):
        return [t for t in self._timers if not t.cancelled]

    def run_soon(self) -> None:
        while self._soon:
            handle = self._soon.pop(0)
            if not handle.cancelled:
                handle.callback()

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        self.run_soon()
        while True:
            due = [t for t in self.live_timers if t.when <= target]
            if not due:
                break
            handle = min(due, key=lambda t: t.when)
            self._timers.remove(handle)
            self.now = handle.when
            handle.callback()
            self.run_soon()
        self.now = target


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def make_entry():
    ids = itertools.count(1)

    def _make(value, type="whole-phrase", ignore_case=False, **kwargs):
        kwargs.setdefault("id", f"e{next(ids)}")
        return HighlightEntry(type=MatchType(type), value=value, ignore_case=ignore_case, **kwargs)

    return _make


@pytest.fixture
def make_rule():
    ids = itertools.count(1)

    def _make(*entries, patterns=("https://example.com/*",), disabled=False, id=None):
        return HighlightRule(
            id=id or f"r{next(ids)}",
            patterns=tuple(patterns),
            highlights=tuple(entries),
            disabled=disabled,
        )

    return _make


@pytest.fixture
def make_document(scheduler):
    def _make(body, url="https://example.com/page"):
        return HtmlDocument(f"<html><head><title>t</title></head><body>{body}</body></html>", url, scheduler=scheduler)

    return _make


@pytest.fixture
def policy():
    return OwnNodePolicy.from_settings()


@pytest.fixture
def find_markers(policy):
    def _find(document):
        return document.soup.find_all(policy.is_marker)

    return _find


@pytest.fixture
def rules_file(tmp_path):
    path = tmp_path / "rules.json"

    def _write(raw):
        path.write_text(json.dumps({RULES_KEY: raw}), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def store(tmp_path):
    return JsonRuleStore(tmp_path / "rules.json")


