from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException

from ..document import HtmlDocument
from ..fetcher import FetchError, fetch_html
from ..lifecycle import HighlightLifecycle
from ..rules import normalize_rules
from ..schemas import FetchRequest, HighlightOut, HighlightRequest, HighlightRule, MarkerOut
from ..store import RuleStoreError, get_store

router = APIRouter(prefix="/highlight", tags=["highlight"])


async def _resolve_rules(raw: Optional[list[Any]]) -> list[HighlightRule]:
    if raw is not None:
        return normalize_rules(raw)
    try:
        return await get_store().load()
    except RuleStoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _highlight(html: str, url: str, rules: list[HighlightRule]) -> HighlightOut:
    document = HtmlDocument(html, url)
    result = HighlightLifecycle(document).reapply(rules, url)
    return HighlightOut(
        url=url,
        active_rule_ids=result.active_rule_ids,
        markers=[MarkerOut.model_validate(m) for m in result.markers],
        html=document.render(),
    )


@router.post("", response_model=HighlightOut)
async def highlight_html(body: HighlightRequest) -> HighlightOut:
    """Highlight the supplied HTML as if it were loaded at ``url``."""
    rules = await _resolve_rules(body.rules)
    return _highlight(body.html, body.url, rules)


@router.post("/fetch", response_model=HighlightOut)
async def highlight_url(body: FetchRequest) -> HighlightOut:
    """Fetch ``url`` and return it highlighted with the active rules."""
    rules = await _resolve_rules(body.rules)
    try:
        html = await fetch_html(body.url)
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return _highlight(html, body.url, rules)
