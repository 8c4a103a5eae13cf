from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, HTTPException

from ..rules import dump_rules, normalize_rules
from ..store import RuleStoreError, get_store

router = APIRouter(prefix="/rules", tags=["rules"])


@router.get("")
async def list_rules() -> list[dict[str, Any]]:
    """Return the stored rules that pass validation, in stored order."""
    try:
        rules = await get_store().load()
    except RuleStoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return dump_rules(rules)


@router.put("")
async def replace_rules(body: list[Any] = Body(...)) -> list[dict[str, Any]]:
    """
    Replace the whole rule list.

    Malformed rules and entries are dropped before saving; the response is
    the list as it was stored.  Subscribed controllers reapply immediately.
    """
    rules = normalize_rules(body)
    stored = dump_rules(rules)
    try:
        await get_store().save(stored)
    except RuleStoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return stored
