"""
Defensive validation of raw rule lists.

Anything that is not a well-formed rule is dropped rather than raised:
malformed entries are removed one by one, and a rule left without a usable
pattern or entry is removed as a whole.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from .schemas import HighlightEntry, HighlightRule

log = logging.getLogger(__name__)


def normalize_entry(raw: Any) -> HighlightEntry | None:
    if not isinstance(raw, dict):
        return None
    try:
        return HighlightEntry.model_validate(raw)
    except ValidationError as exc:
        log.debug("Dropping malformed highlight entry %r: %s", raw.get("id"), exc.errors())
        return None


def normalize_rule(raw: Any) -> HighlightRule | None:
    if not isinstance(raw, dict):
        return None
    if not isinstance(raw.get("id"), str):
        return None

    highlights = raw.get("highlights")
    if not isinstance(highlights, list):
        return None
    entries = [e for e in (normalize_entry(h) for h in highlights) if e is not None]

    patterns = raw.get("patterns")
    if not isinstance(patterns, list):
        return None

    try:
        return HighlightRule.model_validate(
            {
                **raw,
                "patterns": [p for p in patterns if isinstance(p, str)],
                "highlights": entries,
            }
        )
    except ValidationError as exc:
        log.debug("Dropping malformed rule %r: %s", raw.get("id"), exc.errors())
        return None


def normalize_rules(raw: Any) -> list[HighlightRule]:
    """Validate a raw stored value into an ordered list of usable rules."""
    if not isinstance(raw, list):
        return []
    rules = [r for r in (normalize_rule(item) for item in raw) if r is not None]
    if len(rules) != len(raw):
        log.debug("Kept %d of %d stored rule(s)", len(rules), len(raw))
    return rules


def dump_rules(rules: list[HighlightRule]) -> list[dict[str, Any]]:
    """Serialise rules back to their stored (camelCase) form."""
    return [r.model_dump(mode="json", by_alias=True, exclude_none=True) for r in rules]
