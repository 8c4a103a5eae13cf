from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class MatchType(str, Enum):
    WHOLE_PHRASE = "whole-phrase"
    COMMA_SEPARATED = "comma-separated"
    REGEX = "regex"


def _bool_or_false(v: Any) -> bool:
    # stored flags of the wrong type fall back to False instead of failing
    return v if isinstance(v, bool) else False


class HighlightEntry(BaseModel):
    id: str
    type: MatchType
    value: str
    ignore_case: bool = Field(default=False, alias="ignoreCase")
    text_color: str = Field(default="#000000", alias="textColor")
    background_color: str = Field(default="#ffff00", alias="backgroundColor")
    bold: bool = False
    italic: bool = False
    underline: bool = False

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("ignore_case", "bold", "italic", "underline", mode="before")
    @classmethod
    def default_flags(cls, v: Any) -> bool:
        return _bool_or_false(v)

    @field_validator("text_color", "background_color", mode="before")
    @classmethod
    def default_colors(cls, v: Any, info: ValidationInfo) -> str:
        if isinstance(v, str) and v.strip():
            return v.strip()
        return "#000000" if info.field_name == "text_color" else "#ffff00"


class HighlightRule(BaseModel):
    id: str
    patterns: tuple[str, ...] = Field(min_length=1)
    highlights: tuple[HighlightEntry, ...] = Field(min_length=1)
    disabled: bool = False
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("disabled", mode="before")
    @classmethod
    def default_disabled(cls, v: Any) -> bool:
        return _bool_or_false(v)

    @field_validator("patterns")
    @classmethod
    def strip_patterns(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        cleaned = tuple(p.strip() for p in v if p.strip())
        if not cleaned:
            raise ValueError("at least one non-blank URL pattern is required")
        return cleaned


# ---------------------------------------------------------------------------
# HTTP payloads
# ---------------------------------------------------------------------------


class HighlightRequest(BaseModel):
    url: str
    html: str
    # raw rule list; falls back to the rule store when omitted
    rules: Optional[list[Any]] = None

    @field_validator("url")
    @classmethod
    def strip_url(cls, v: str) -> str:
        return v.strip()


class FetchRequest(BaseModel):
    url: str
    rules: Optional[list[Any]] = None

    @field_validator("url")
    @classmethod
    def require_http(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must be an http(s) URL")
        return v


class MarkerOut(BaseModel):
    rule_id: str
    entry_id: str
    text: str

    model_config = {"from_attributes": True}


class HighlightOut(BaseModel):
    url: str
    active_rule_ids: list[str]
    markers: list[MarkerOut]
    html: str
