"""
Observable HTML document.

Wraps a BeautifulSoup tree with the pieces of a browser page the highlight
engine relies on:

  • a current URL with pushState-style navigation and a back stack
  • window-level events (``resize``, ``popstate``)
  • a mutation API that records every child-list change
  • mutation watchers that receive those records in batches, delivered on
    the next turn of the event loop

Only writes that go through the mutation API are observed.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Sequence

from bs4 import BeautifulSoup, NavigableString, PageElement, Tag

from .dom import is_text_node
from .scheduling import AsyncioScheduler, Handle, Scheduler

log = logging.getLogger(__name__)

WINDOW_EVENTS: tuple[str, ...] = ("resize", "popstate")


@dataclass(frozen=True, slots=True)
class MutationRecord:
    type: str
    target: PageElement
    added_nodes: tuple[PageElement, ...] = ()
    removed_nodes: tuple[PageElement, ...] = ()


MutationCallback = Callable[[list[MutationRecord]], None]
EventListener = Callable[[str], None]


def _contains(root: PageElement, node: PageElement) -> bool:
    return node is root or any(parent is root for parent in node.parents)


class MutationWatcher:
    """Subtree child-list observer with a reentrancy guard.

    While :meth:`paused` is active, records are discarded at the moment they
    are produced, so writes made inside the guard are never delivered even
    if the watcher stays attached.
    """

    def __init__(self, document: "HtmlDocument", callback: MutationCallback) -> None:
        self._document = document
        self._callback = callback
        self._target: Optional[PageElement] = None
        self._pending: list[MutationRecord] = []
        self._delivery: Optional[Handle] = None
        self._pause_depth = 0

    @property
    def observing(self) -> bool:
        return self._target is not None

    @property
    def suppressed(self) -> bool:
        return self._pause_depth > 0

    def observe(self, target: PageElement) -> None:
        self._target = target

    def disconnect(self) -> None:
        """Stop observing and drop any records not yet delivered."""
        self._target = None
        self._pending.clear()
        if self._delivery is not None:
            self._delivery.cancel()
            self._delivery = None

    @contextmanager
    def paused(self) -> Iterator[None]:
        self._pause_depth += 1
        try:
            yield
        finally:
            self._pause_depth -= 1

    def take_records(self) -> list[MutationRecord]:
        records, self._pending = self._pending, []
        return records

    def _notify(self, record: MutationRecord) -> None:
        if self._target is None or self._pause_depth:
            return
        if not _contains(self._target, record.target):
            return
        self._pending.append(record)
        if self._delivery is None:
            self._delivery = self._document.scheduler.call_soon(self._deliver)

    def _deliver(self) -> None:
        self._delivery = None
        batch = self.take_records()
        if batch and self._target is not None:
            self._callback(batch)


class HtmlDocument:
    """A parsed page plus its location, events and mutation observers."""

    def __init__(
        self,
        html: str,
        url: str,
        *,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.soup = BeautifulSoup(html, "lxml")
        self.url = url
        self.scheduler: Scheduler = scheduler or AsyncioScheduler()
        self._history: list[str] = [url]
        self._watchers: list[MutationWatcher] = []
        self._listeners: dict[str, list[EventListener]] = defaultdict(list)

    @property
    def body(self) -> Tag:
        return self.soup.body if self.soup.body is not None else self.soup

    def contains(self, node: PageElement) -> bool:
        """True while *node* is attached somewhere in this document."""
        return _contains(self.soup, node)

    def render(self) -> str:
        return str(self.soup)

    def text(self) -> str:
        return self.body.get_text()

    # ------------------------------------------------------------------
    # Node factories
    # ------------------------------------------------------------------

    def new_text(self, text: str) -> NavigableString:
        return NavigableString(text)

    def new_tag(self, name: str, attrs: Optional[dict[str, str]] = None) -> Tag:
        return self.soup.new_tag(name, attrs=attrs or {})

    # ------------------------------------------------------------------
    # Mutation API
    # ------------------------------------------------------------------

    def create_watcher(self, callback: MutationCallback) -> MutationWatcher:
        watcher = MutationWatcher(self, callback)
        self._watchers.append(watcher)
        return watcher

    def _record(
        self,
        target: PageElement,
        added: Sequence[PageElement] = (),
        removed: Sequence[PageElement] = (),
    ) -> None:
        record = MutationRecord("childList", target, tuple(added), tuple(removed))
        for watcher in self._watchers:
            watcher._notify(record)

    def append(self, parent: Tag, child: PageElement) -> PageElement:
        parent.append(child)
        self._record(parent, added=(child,))
        return child

    def insert_before(self, reference: PageElement, child: PageElement) -> PageElement:
        parent = reference.parent
        if parent is None:
            raise ValueError("reference node is not attached to a parent")
        reference.insert_before(child)
        self._record(parent, added=(child,))
        return child

    def remove(self, node: PageElement) -> None:
        parent = node.parent
        if parent is None:
            return
        node.extract()
        self._record(parent, removed=(node,))

    def replace_with(self, node: PageElement, replacements: Sequence[PageElement]) -> bool:
        """Swap *node* for *replacements*; False when *node* is detached."""
        parent = node.parent
        if parent is None:
            return False
        node.replace_with(*replacements)
        self._record(parent, added=replacements, removed=(node,))
        return True

    def normalize(self, tag: Tag) -> None:
        """Merge adjacent text children of *tag* and drop empty ones."""
        added: list[PageElement] = []
        removed: list[PageElement] = []
        run: list[NavigableString] = []

        def flush() -> None:
            if len(run) == 1 and str(run[0]):
                run.clear()
                return
            merged = "".join(str(s) for s in run)
            if run and merged:
                replacement = NavigableString(merged)
                run[0].replace_with(replacement)
                added.append(replacement)
                removed.append(run[0])
                run_rest = run[1:]
            else:
                run_rest = run[:]
            for s in run_rest:
                s.extract()
                removed.append(s)
            run.clear()

        for child in list(tag.contents):
            if is_text_node(child):
                run.append(child)  # type: ignore[arg-type]
            else:
                flush()
        flush()

        if added or removed:
            self._record(tag, added=added, removed=removed)

    # ------------------------------------------------------------------
    # Location and window events
    # ------------------------------------------------------------------

    def navigate(self, url: str) -> None:
        """Client-side route change; like history.pushState, fires no event."""
        self._history.append(url)
        self.url = url

    def go_back(self) -> bool:
        if len(self._history) < 2:
            return False
        self._history.pop()
        self.url = self._history[-1]
        self.dispatch_event("popstate")
        return True

    def add_event_listener(self, kind: str, listener: EventListener) -> None:
        self._listeners[kind].append(listener)

    def remove_event_listener(self, kind: str, listener: EventListener) -> None:
        try:
            self._listeners[kind].remove(listener)
        except ValueError:
            pass

    def dispatch_event(self, kind: str) -> None:
        for listener in list(self._listeners.get(kind, ())):
            try:
                listener(kind)
            except Exception:
                log.exception("Listener for %r event failed", kind)
