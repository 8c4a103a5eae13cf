"""
pagemarker – Text Highlighting Service
======================================

Run locally:
    uvicorn pagemarker.main:app --reload

Environment variables (see .env.example):
    PAGEMARKER_RULES_PATH           JSON file holding the rule list  (default rules.json)
    PAGEMARKER_DEBOUNCE_MS          delay before a full reapply       (default 500)
    PAGEMARKER_MARKER_CLASS_PREFIX  class prefix of marker spans      (default pagemarker-highlight-)
    PAGEMARKER_REQUEST_TIMEOUT      HTTP timeout in seconds           (default 15.0)
    PAGEMARKER_LOG_LEVEL            logging level                     (default INFO)
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from .config import settings
from .routes import highlight, rules

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)-8s %(name)s – %(message)s",
)


app = FastAPI(
    title="pagemarker – Text Highlighting Service",
    description=(
        "Applies URL-scoped highlight rules to HTML documents and stores "
        "the rule list."
    ),
    version="1.0.0",
)

app.include_router(rules.router)
app.include_router(highlight.router)


@app.get("/health")
def health():
    return {"status": "ok"}
