"""Utility helpers for HTTP headers, status mapping, timestamps and HTML cleanup."""

import html
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from zoneinfo import ZoneInfo

from .config import DEFAULT_TZ
from .models import Empty, FailureKind, Fetched, Ok

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def _headers(token: Optional[str]) -> Dict[str, str]:
    h = {
        "Accept": "application/json",
        "User-Agent": "canvas-query-agent/1.0",
    }
    if token:
        h["Authorization"] = f"Bearer {token}"
    return h


def api_root(base_url: str) -> str:
    """Normalise a Canvas instance URL to its ``/api/v1`` root."""
    url = (base_url or "").strip().rstrip("/")
    if url.endswith("/api/v1"):
        url = url[: -len("/api/v1")]
    return f"{url}/api/v1"


def _failure_for_status(status: int) -> FailureKind:
    if status == 401:
        return FailureKind.UNAUTHORIZED
    if status == 403:
        return FailureKind.FORBIDDEN
    if status == 404:
        return FailureKind.NOT_FOUND
    return FailureKind.HTTP_ERROR


def _json_or_empty(resp: httpx.Response) -> Fetched[Any]:
    path = resp.request.url.path
    if resp.status_code >= 400:
        kind = _failure_for_status(resp.status_code)
        if kind is FailureKind.UNAUTHORIZED:
            logger.error("Canvas rejected the credential on %s (401): likely invalid or expired token", path)
        elif kind is FailureKind.NOT_FOUND:
            logger.warning("Canvas endpoint or resource not found: %s (404)", path)
        else:
            logger.warning("Canvas request failed: %s (%s) %s", path, resp.status_code, resp.text[:200])
        return Empty(kind, resp.status_code)
    try:
        return Ok(resp.json())
    except ValueError:
        logger.warning("Invalid JSON from Canvas on %s", path)
        return Empty(FailureKind.INVALID_PAYLOAD, resp.status_code)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def local_display(dt: datetime, tz_name: str = DEFAULT_TZ) -> str:
    """Human-readable timestamp in ``tz_name``, e.g. ``Oct 21, 2026 11:59 PM``."""
    local = as_aware(dt).astimezone(ZoneInfo(tz_name))
    return local.strftime("%b %d, %Y %I:%M %p")


def strip_html(text: Optional[str]) -> str:
    if not text:
        return ""
    cleaned = html.unescape(_TAG_RE.sub(" ", text))
    return _WS_RE.sub(" ", cleaned).strip()


def excerpt(text: Optional[str], limit: int) -> str:
    """HTML-free prefix of ``text`` with an ellipsis marker."""
    return f"{strip_html(text)[:limit]}..."
