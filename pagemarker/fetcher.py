"""
Page fetcher for the one-shot highlight endpoint.

  • A single GET with redirects followed and a bounded timeout.
  • Only HTML responses are accepted.
  • Bodies larger than ``settings.max_document_bytes`` are refused, either up
    front from Content-Length or as soon as the streamed body passes the cap.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .config import settings

log = logging.getLogger(__name__)

_USER_AGENT = "pagemarker/1.0 (+text highlighting service)"


class FetchError(RuntimeError):
    """The page could not be fetched as HTML."""


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        headers={"User-Agent": _USER_AGENT},
        timeout=settings.request_timeout,
        follow_redirects=True,
        max_redirects=5,
    )


async def _get(client: httpx.AsyncClient, url: str) -> str:
    limit = settings.max_document_bytes
    try:
        async with client.stream("GET", url) as response:
            response.raise_for_status()

            content_type = response.headers.get("content-type", "")
            if "html" not in content_type:
                raise FetchError(f"Non-HTML content-type: {content_type or 'unknown'}")
            declared = response.headers.get("content-length", "")
            if declared.isdigit() and int(declared) > limit:
                raise FetchError(f"Document exceeds {limit} bytes")

            body = bytearray()
            async for chunk in response.aiter_bytes():
                body.extend(chunk)
                if len(body) > limit:
                    raise FetchError(f"Document exceeds {limit} bytes")
            return body.decode(response.encoding or "utf-8", errors="replace")
    except httpx.HTTPStatusError as exc:
        log.warning("HTTP error on %s: %s", url, exc.response.status_code)
        raise FetchError(f"HTTP {exc.response.status_code}") from exc
    except httpx.RequestError as exc:
        log.warning("Request error on %s: %s", url, exc)
        raise FetchError(f"Request error: {type(exc).__name__}") from exc


async def fetch_html(url: str, client: Optional[httpx.AsyncClient] = None) -> str:
    """Return the HTML body of *url*; raises FetchError on any failure."""
    if client is not None:
        return await _get(client, url)
    async with _client() as owned:
        return await _get(owned, url)
