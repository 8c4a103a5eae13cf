"""Full reset and full reapply of highlights over a document."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from bs4 import Tag

from .document import HtmlDocument
from .dom import OwnNodePolicy
from .scanner import AppliedMarker, TreeScanner
from .schemas import HighlightRule
from .urlpattern import matches

log = logging.getLogger(__name__)


@dataclass(slots=True)
class ReapplyResult:
    active_rule_ids: list[str] = field(default_factory=list)
    markers: list[AppliedMarker] = field(default_factory=list)


def active_rules(rules: Iterable[HighlightRule], url: str) -> list[HighlightRule]:
    """Rules that are enabled and have at least one pattern matching *url*."""
    return [r for r in rules if not r.disabled and matches(url, r.patterns)]


class HighlightLifecycle:
    """Strips and rebuilds every marker in a document.

    Callers that observe the document must detach (or pause) their watcher
    around :meth:`reapply`; this class writes through the document's
    mutation API like any other script would.
    """

    def __init__(self, document: HtmlDocument, policy: Optional[OwnNodePolicy] = None) -> None:
        self._document = document
        self.scanner = TreeScanner(document, policy)

    def reset(self) -> int:
        """Replace every marker with its text and re-merge split text nodes."""
        policy = self.scanner.policy
        markers = self._document.soup.find_all(policy.is_marker)

        parents: list[Tag] = []
        seen: set[int] = set()
        removed = 0
        for marker in markers:
            parent = marker.parent
            if parent is None:
                continue
            text = self._document.new_text(marker.get_text())
            if self._document.replace_with(marker, [text]):
                removed += 1
                if id(parent) not in seen:
                    seen.add(id(parent))
                    parents.append(parent)

        for parent in parents:
            self._document.normalize(parent)

        if removed:
            log.debug("Removed %d marker(s)", removed)
        return removed

    def reapply(self, rules: Iterable[HighlightRule], url: str) -> ReapplyResult:
        """Reset, then scan the whole body with the rules active for *url*."""
        active = active_rules(rules, url)
        self.reset()
        if not active:
            return ReapplyResult()

        markers = self.scanner.scan(self._document.body, active)
        log.debug(
            "Reapplied %d rule(s) on %s: %d marker(s)", len(active), url, len(markers)
        )
        return ReapplyResult([r.id for r in active], markers)
