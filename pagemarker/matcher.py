"""
Highlight entry compiler and span finder.

Supported entry types
---------------------
whole-phrase     – literal phrase; only the first occurrence in a text node
comma-separated  – "dog, cat, bird"; the first word *in list order* that occurs
                   in the text yields one span and the search stops there
regex            – regular expression; every non-overlapping match.  Python syntax,
                   plus the JavaScript (?<name>...) and \\k<name> group forms

Entries are compiled once per scan attempt and reused across every text node,
so an invalid regex is reported once per scan rather than once per node.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from .schemas import HighlightEntry, MatchType

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Span:
    start: int         # offset of the first matched character
    end: int           # offset one past the last matched character
    matched_text: str  # text[start:end]


@dataclass(slots=True)
class CompiledEntry:
    entry: HighlightEntry
    # one pattern per searchable term; empty when nothing can ever match
    patterns: list[re.Pattern[str]] = field(default_factory=list)

    def find_spans(self, text: str) -> list[Span]:
        if not self.patterns or not text:
            return []

        if self.entry.type is MatchType.REGEX:
            return [
                Span(m.start(), m.end(), m.group(0))
                for m in self.patterns[0].finditer(text)
                if m.end() > m.start()
            ]

        # whole-phrase has a single term; comma-separated stops at the first
        # list word that occurs anywhere in the text
        for pattern in self.patterns:
            m = pattern.search(text)
            if m is not None:
                return [Span(m.start(), m.end(), m.group(0))]
        return []


# JS named groups and their backreferences, which Python spells (?P<..>) and (?P=..)
_JS_GROUP_RE = re.compile(r"(?<!\\)\(\?<(?![=!])")
_JS_BACKREF_RE = re.compile(r"\\k<([A-Za-z_][A-Za-z0-9_]*)>")


def translate_js_regex(source: str) -> str:
    """Rewrite the JavaScript-only named-group syntax of *source* for Python."""
    source = _JS_GROUP_RE.sub("(?P<", source)
    return _JS_BACKREF_RE.sub(r"(?P=\1)", source)


def _literal(term: str, ignore_case: bool) -> re.Pattern[str]:
    return re.compile(re.escape(term), re.IGNORECASE if ignore_case else 0)


def split_words(value: str) -> list[str]:
    """Split a comma-separated word list, trimming and dropping blanks."""
    return [w.strip() for w in value.split(",") if w.strip()]


def compile_entry(entry: HighlightEntry) -> CompiledEntry:
    """Compile a single highlight entry. Invalid regexes compile to no-match."""
    if entry.type is MatchType.WHOLE_PHRASE:
        if not entry.value:
            return CompiledEntry(entry)
        return CompiledEntry(entry, [_literal(entry.value, entry.ignore_case)])

    if entry.type is MatchType.COMMA_SEPARATED:
        words = split_words(entry.value)
        return CompiledEntry(entry, [_literal(w, entry.ignore_case) for w in words])

    try:
        pattern = re.compile(translate_js_regex(entry.value), re.IGNORECASE if entry.ignore_case else 0)
    except re.error as exc:
        log.warning("Invalid regex pattern %r in entry %s: %s", entry.value, entry.id, exc)
        return CompiledEntry(entry)
    return CompiledEntry(entry, [pattern])


def find_spans(text: str, entry: HighlightEntry) -> list[Span]:
    """One-off convenience wrapper: compile *entry* and match it against *text*."""
    return compile_entry(entry).find_spans(text)
