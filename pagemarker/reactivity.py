"""
Keeps highlights in sync with a changing document.

The decision logic is a pure reducer, ``reduce(state, event)``, returning the
new state plus a list of effects.  :class:`HighlightController` owns the
document watcher, the debounce timer and the rule snapshot, feeds events to
the reducer and carries out the effects.

Event handling
--------------
  • start        – full reapply, then begin observing the document body
  • mutations    – URL changed since the last batch: debounced full reapply,
                   nothing else for that batch; otherwise every added node
                   outside our own elements gets an immediate incremental scan
  • resize /     – debounced full reapply
    popstate
  • rules saved  – the new raw value is re-validated and fully reapplied
  • stop         – cancel the pending timer, stop observing

Every write the engine makes runs with the watcher's reentrancy guard raised
(a full reapply additionally detaches it), so the engine's own markers never
come back to it as mutations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional, Union

from bs4 import PageElement

from .config import settings
from .document import WINDOW_EVENTS, HtmlDocument, MutationRecord
from .dom import OwnNodePolicy
from .lifecycle import HighlightLifecycle, ReapplyResult, active_rules
from .rules import normalize_rules
from .scheduling import Debouncer, Scheduler
from .schemas import HighlightRule
from .store import JsonRuleStore

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# State, events, effects
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ControllerState:
    rules: tuple[HighlightRule, ...] = ()
    last_url: str = ""
    observing: bool = False
    debounce_seconds: float = 0.5
    policy: OwnNodePolicy = field(default_factory=OwnNodePolicy.from_settings)


@dataclass(frozen=True, slots=True)
class Started:
    rules: tuple[HighlightRule, ...]
    url: str


@dataclass(frozen=True, slots=True)
class RulesLoaded:
    rules: tuple[HighlightRule, ...]


@dataclass(frozen=True, slots=True)
class MutationBatch:
    url: str
    records: tuple[MutationRecord, ...]


@dataclass(frozen=True, slots=True)
class WindowEvent:
    kind: str


@dataclass(frozen=True, slots=True)
class TimerFired:
    url: str


@dataclass(frozen=True, slots=True)
class Stopped:
    pass


Event = Union[Started, RulesLoaded, MutationBatch, WindowEvent, TimerFired, Stopped]


@dataclass(frozen=True, slots=True)
class AttachWatcher:
    pass


@dataclass(frozen=True, slots=True)
class DetachWatcher:
    pass


@dataclass(frozen=True, slots=True)
class ScheduleReapply:
    delay: float


@dataclass(frozen=True, slots=True)
class CancelTimer:
    pass


@dataclass(frozen=True, slots=True, eq=False)
class RunIncrementalScan:
    node: PageElement
    rules: tuple[HighlightRule, ...]


@dataclass(frozen=True, slots=True)
class RunFullReapply:
    pass


Effect = Union[AttachWatcher, DetachWatcher, ScheduleReapply, CancelTimer, RunIncrementalScan, RunFullReapply]


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------


def _incremental(state: ControllerState, batch: MutationBatch) -> list[Effect]:
    active = tuple(active_rules(state.rules, batch.url))
    if not active:
        return []
    effects: list[Effect] = []
    for record in batch.records:
        if record.type != "childList" or state.policy.is_own(record.target):
            continue
        effects.extend(RunIncrementalScan(node, active) for node in record.added_nodes)
    return effects


def reduce(state: ControllerState, event: Event) -> tuple[ControllerState, list[Effect]]:
    if isinstance(event, Started):
        new_state = replace(state, rules=event.rules, last_url=event.url, observing=True)
        return new_state, [RunFullReapply(), AttachWatcher()]

    if isinstance(event, Stopped):
        return replace(state, observing=False), [CancelTimer(), DetachWatcher()]

    if not state.observing:
        return state, []

    if isinstance(event, RulesLoaded):
        return replace(state, rules=event.rules), [RunFullReapply()]

    if isinstance(event, TimerFired):
        return replace(state, last_url=event.url), [RunFullReapply()]

    if isinstance(event, WindowEvent):
        return state, [ScheduleReapply(state.debounce_seconds)]

    if isinstance(event, MutationBatch):
        if event.url != state.last_url:
            return replace(state, last_url=event.url), [ScheduleReapply(state.debounce_seconds)]
        return state, _incremental(state, event)

    raise TypeError(f"Unknown event: {event!r}")


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


class HighlightController:
    """Owns the highlight state of one document between start() and stop()."""

    def __init__(
        self,
        document: HtmlDocument,
        store: JsonRuleStore,
        *,
        policy: Optional[OwnNodePolicy] = None,
        debounce_ms: Optional[int] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._document = document
        self._store = store
        self._lifecycle = HighlightLifecycle(document, policy)
        delay = (settings.debounce_ms if debounce_ms is None else debounce_ms) / 1000.0
        self._state = ControllerState(debounce_seconds=delay, policy=self._lifecycle.scanner.policy)
        self._watcher = document.create_watcher(self._on_mutations)
        self._debouncer = Debouncer(scheduler or document.scheduler, delay, self._on_timer)
        self._unsubscribe: Optional[Callable[[], None]] = None

        self.full_reapplies = 0
        self.incremental_scans = 0
        self.last_result = ReapplyResult()

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state.observing

    @property
    def reapply_pending(self) -> bool:
        return self._debouncer.pending

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.running:
            return
        rules = await self._load_rules()
        self._unsubscribe = self._store.subscribe(self._on_rules_changed)
        for kind in WINDOW_EVENTS:
            self._document.add_event_listener(kind, self._on_window_event)
        self.dispatch(Started(tuple(rules), self._document.url))
        log.info(
            "Highlighting started on %s with %d rule(s), %d marker(s)",
            self._document.url,
            len(rules),
            len(self.last_result.markers),
        )

    def stop(self) -> None:
        if not self.running:
            return
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for kind in WINDOW_EVENTS:
            self._document.remove_event_listener(kind, self._on_window_event)
        self.dispatch(Stopped())
        log.info("Highlighting stopped on %s", self._document.url)

    async def _load_rules(self) -> list[HighlightRule]:
        try:
            return await self._store.load()
        except Exception:
            log.exception("Failed to load highlight rules; highlighting disabled")
            return []

    # ------------------------------------------------------------------
    # Event plumbing
    # ------------------------------------------------------------------

    def dispatch(self, event: Event) -> None:
        self._state, effects = reduce(self._state, event)
        for effect in effects:
            self._execute(effect)

    def _execute(self, effect: Effect) -> None:
        if isinstance(effect, AttachWatcher):
            self._watcher.observe(self._document.body)
        elif isinstance(effect, DetachWatcher):
            self._watcher.disconnect()
        elif isinstance(effect, ScheduleReapply):
            self._debouncer.trigger(effect.delay)
        elif isinstance(effect, CancelTimer):
            self._debouncer.cancel()
        elif isinstance(effect, RunIncrementalScan):
            self._run_incremental(effect.node, effect.rules)
        elif isinstance(effect, RunFullReapply):
            self._run_full_reapply()

    def _on_mutations(self, records: list[MutationRecord]) -> None:
        if self._watcher.suppressed:
            return
        self.dispatch(MutationBatch(self._document.url, tuple(records)))

    def _on_window_event(self, kind: str) -> None:
        self.dispatch(WindowEvent(kind))

    def _on_timer(self) -> None:
        self.dispatch(TimerFired(self._document.url))

    def _on_rules_changed(self, raw: Any) -> None:
        rules = normalize_rules(raw)
        log.info("Highlight rules changed: %d usable rule(s)", len(rules))
        self.dispatch(RulesLoaded(tuple(rules)))

    # ------------------------------------------------------------------
    # Effects that touch the document
    # ------------------------------------------------------------------

    def _run_full_reapply(self) -> None:
        was_observing = self._watcher.observing
        self._watcher.disconnect()
        self.full_reapplies += 1
        try:
            with self._watcher.paused():
                self.last_result = self._lifecycle.reapply(self._state.rules, self._document.url)
        except Exception:
            log.exception("Full reapply failed on %s", self._document.url)
        finally:
            if was_observing and self.running:
                self._watcher.observe(self._document.body)

    def _run_incremental(self, node: PageElement, rules: tuple[HighlightRule, ...]) -> None:
        if not self._document.contains(node):
            return
        self.incremental_scans += 1
        try:
            with self._watcher.paused():
                self._lifecycle.scanner.scan(node, rules)
        except Exception:
            log.exception("Incremental scan failed")
