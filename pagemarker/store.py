"""
Rule store – a JSON file holding the raw rule list under a single key.

Reads and writes run in a worker thread so they never block the event loop.
Subscribers are told about every successful save and receive the new raw
value; validating it is their job.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional

from .config import settings
from .rules import normalize_rules
from .schemas import HighlightRule

log = logging.getLogger(__name__)

RULES_KEY = "highlightTextRules"

ChangeListener = Callable[[Any], None]


class RuleStoreError(RuntimeError):
    """The stored rule list could not be read or written."""


class JsonRuleStore:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._listeners: list[ChangeListener] = []

    # ---------------------------------------------------------------------
    # Raw access
    # ---------------------------------------------------------------------

    def _read_raw(self) -> Any:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, json.JSONDecodeError) as exc:
            raise RuleStoreError(f"Failed to read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise RuleStoreError(f"{self.path} does not hold a JSON object")
        return data.get(RULES_KEY, [])

    def _write_raw(self, raw: Any) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps({RULES_KEY: raw}, indent=2), encoding="utf-8")
            tmp.replace(self.path)
        except (OSError, TypeError, ValueError) as exc:
            raise RuleStoreError(f"Failed to write {self.path}: {exc}") from exc

    async def load_raw(self) -> Any:
        return await asyncio.to_thread(self._read_raw)

    async def load(self) -> list[HighlightRule]:
        """Return the stored rules, validated; malformed items are dropped."""
        return normalize_rules(await self.load_raw())

    async def save(self, raw: Any) -> None:
        """Persist *raw* as the new rule list and notify subscribers."""
        await asyncio.to_thread(self._write_raw, raw)
        log.info("Saved %d raw rule(s) to %s", len(raw) if isinstance(raw, list) else 0, self.path)
        for listener in list(self._listeners):
            try:
                listener(raw)
            except Exception:
                log.exception("Rule change listener failed")

    # ---------------------------------------------------------------------
    # Change notification
    # ---------------------------------------------------------------------

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


_store: Optional[JsonRuleStore] = None


def get_store() -> JsonRuleStore:
    """Process-wide store at ``settings.rules_path``, created on first use."""
    global _store
    if _store is None:
        _store = JsonRuleStore(settings.rules_path)
    return _store
