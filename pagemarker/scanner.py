"""
Tree scanner: wraps matched text in marker spans.

Policy
------
  • Text nodes are collected first (document order), then processed, so the
    replacements made along the way never disturb the walk.
  • For each text node, rules are tried in list order and, inside a rule,
    entries in list order.  The first entry yielding any span wins; the node
    is replaced by leading text, marker(s) interleaved with plain text, and
    trailing text, and no further rule or entry is tried for it.
  • Whitespace-only nodes are left alone.
  • A node that lost its parent before replacement is skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from bs4 import NavigableString, PageElement, Tag

from .document import HtmlDocument
from .dom import EXCLUDED_TAGS, OwnNodePolicy, is_text_node, iter_text_nodes, under_excluded_tag
from .matcher import CompiledEntry, Span, compile_entry
from .schemas import HighlightEntry, HighlightRule

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class AppliedMarker:
    rule_id: str
    entry_id: str
    text: str


CompiledRule = tuple[str, list[CompiledEntry]]


def marker_style(entry: HighlightEntry) -> str:
    """Inline CSS for a marker span."""
    parts = [
        f"color: {entry.text_color}",
        f"background-color: {entry.background_color}",
        "padding: 1px 2px",
        "border-radius: 2px",
    ]
    if entry.bold:
        parts.append("font-weight: bold")
    if entry.italic:
        parts.append("font-style: italic")
    if entry.underline:
        parts.append("text-decoration: underline")
    return "; ".join(parts) + ";"


class TreeScanner:
    def __init__(self, document: HtmlDocument, policy: Optional[OwnNodePolicy] = None) -> None:
        self._document = document
        self._policy = policy or OwnNodePolicy.from_settings()

    @property
    def policy(self) -> OwnNodePolicy:
        return self._policy

    def build_marker(self, text: str, rule_id: str, entry: HighlightEntry) -> Tag:
        marker = self._document.new_tag(
            "span",
            attrs={
                "class": f"{self._policy.marker_prefix}{rule_id}-{entry.id}",
                "style": marker_style(entry),
                "data-rule-id": rule_id,
                "data-entry-id": entry.id,
            },
        )
        marker.append(self._document.new_text(text))
        return marker

    def _root_is_eligible(self, root: PageElement) -> bool:
        if isinstance(root, Tag):
            if root.name in EXCLUDED_TAGS:
                return False
        elif not is_text_node(root):
            return False
        return not (under_excluded_tag(root) or self._policy.is_own(root))

    def scan(self, root: Optional[PageElement], rules: Sequence[HighlightRule]) -> list[AppliedMarker]:
        """Highlight every eligible text node under *root* (inclusive)."""
        if root is None or not rules or not self._root_is_eligible(root):
            return []

        # compiled once per scan: an invalid regex is reported once here
        compiled: list[CompiledRule] = [
            (rule.id, [compile_entry(entry) for entry in rule.highlights]) for rule in rules
        ]

        targets = list(iter_text_nodes(root, self._policy))
        applied: list[AppliedMarker] = []
        for node in targets:
            try:
                applied.extend(self._process(node, compiled))
            except Exception:
                log.exception("Failed to highlight text node %r", str(node)[:80])

        log.debug(
            "Scanned %d text node(s) under <%s>: %d marker(s)",
            len(targets),
            getattr(root, "name", None) or "#text",
            len(applied),
        )
        return applied

    def _process(self, node: NavigableString, compiled: list[CompiledRule]) -> list[AppliedMarker]:
        text = str(node)
        if not text.strip():
            return []
        for rule_id, entries in compiled:
            for entry in entries:
                spans = entry.find_spans(text)
                if spans:
                    return self._materialize(node, text, spans, rule_id, entry.entry)
        return []

    def _materialize(
        self,
        node: NavigableString,
        text: str,
        spans: list[Span],
        rule_id: str,
        entry: HighlightEntry,
    ) -> list[AppliedMarker]:
        pieces: list[PageElement] = []
        applied: list[AppliedMarker] = []
        last = 0
        for span in spans:
            if span.start > last:
                pieces.append(self._document.new_text(text[last:span.start]))
            pieces.append(self.build_marker(span.matched_text, rule_id, entry))
            applied.append(AppliedMarker(rule_id, entry.id, span.matched_text))
            last = span.end
        if last < len(text):
            pieces.append(self._document.new_text(text[last:]))

        if not self._document.replace_with(node, pieces):
            log.debug("Text node detached before highlighting; skipped")
            return []
        return applied
