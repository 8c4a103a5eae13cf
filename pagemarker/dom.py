"""
Node classification for the highlight tree walk.

The walk never looks inside elements that hold code, form input, embedded
media or metadata, and never inside the engine's own markers or companion
UI.  Classification is a pure function of the node so the traversal itself
stays independent of any particular tree-walking primitive.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator

from bs4 import NavigableString, PageElement, Tag

from .config import settings


# ---------------------------------------------------------------------------
# Tag sets
# ---------------------------------------------------------------------------

# Sub-trees rooted at these tags are never scanned.
EXCLUDED_TAGS: frozenset[str] = frozenset(
    {
        # Code and raw text
        "script", "style", "code", "pre", "noscript",
        # Form controls
        "textarea", "input",
        # Embedded media
        "img", "video", "audio", "canvas", "svg", "iframe",
        # Metadata and void elements
        "link", "meta", "br", "hr",
    }
)


class NodeVerdict(Enum):
    ACCEPT = "accept"                  # visit the node and its children
    REJECT = "reject"                  # skip the node, still visit its children
    REJECT_SUBTREE = "reject-subtree"  # skip the node and everything below it


# ---------------------------------------------------------------------------
# Own-node detection
# ---------------------------------------------------------------------------


def is_text_node(node: object) -> bool:
    """True for plain text; comments, doctypes, CDATA and script text are not."""
    return type(node) is NavigableString


def class_names(tag: Tag) -> list[str]:
    value = tag.get("class")
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    return list(value)


@dataclass(frozen=True, slots=True)
class OwnNodePolicy:
    """Identifies markers and companion UI by their reserved prefixes."""

    marker_prefix: str
    companion_prefix: str

    @classmethod
    def from_settings(cls) -> "OwnNodePolicy":
        return cls(settings.marker_class_prefix, settings.companion_prefix)

    def is_marker(self, node: PageElement) -> bool:
        if not isinstance(node, Tag):
            return False
        return any(c.startswith(self.marker_prefix) for c in class_names(node))

    def is_own_element(self, node: PageElement) -> bool:
        if not isinstance(node, Tag):
            return False
        classes = " ".join(class_names(node))
        node_id = str(node.get("id") or "")
        return (
            self.marker_prefix in classes
            or self.companion_prefix in classes
            or self.companion_prefix in node_id
        )

    def is_own(self, node: PageElement) -> bool:
        """True if *node* is, or sits inside, one of our own elements."""
        if self.is_own_element(node):
            return True
        return any(self.is_own_element(parent) for parent in node.parents)


def under_excluded_tag(node: PageElement) -> bool:
    """True if any ancestor of *node* is an excluded tag."""
    return any(parent.name in EXCLUDED_TAGS for parent in node.parents)


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


def classify(node: PageElement, policy: OwnNodePolicy) -> NodeVerdict:
    if isinstance(node, Tag):
        if node.name in EXCLUDED_TAGS or policy.is_own_element(node):
            return NodeVerdict.REJECT_SUBTREE
        return NodeVerdict.ACCEPT
    if is_text_node(node):
        return NodeVerdict.ACCEPT
    return NodeVerdict.REJECT


def iter_text_nodes(root: PageElement, policy: OwnNodePolicy) -> Iterator[NavigableString]:
    """Yield accepted text nodes under *root* (inclusive) in document order."""
    stack: list[PageElement] = [root]
    while stack:
        node = stack.pop()
        verdict = classify(node, policy)
        if verdict is NodeVerdict.REJECT_SUBTREE:
            continue
        if verdict is NodeVerdict.ACCEPT and is_text_node(node):
            yield node  # type: ignore[misc]
        if isinstance(node, Tag):
            stack.extend(reversed(node.contents))
