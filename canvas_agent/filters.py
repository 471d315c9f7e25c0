"""Narrow fetched items by time window or keyword."""

from datetime import datetime, timedelta
from typing import List, Optional, Sequence, TypeVar

from .utils import as_aware, utcnow

T = TypeVar("T")

RECENT_WINDOW = timedelta(days=7)


def _first_date(item: object, fields: Sequence[str]) -> Optional[datetime]:
    for name in fields:
        value = getattr(item, name, None)
        if value is not None:
            return as_aware(value)
    return None


def filter_by_time_frame(items: List[T], frame: Optional[str], now: Optional[datetime] = None) -> List[T]:
    """Keep ``upcoming``, ``past`` or ``recent`` items; anything else passes through.

    Items without the relevant date are dropped by the three real frames.
    """
    frame = (frame or "").strip().lower()
    if frame not in ("upcoming", "past", "recent"):
        return list(items)
    now = as_aware(now or utcnow())
    cutoff = now - RECENT_WINDOW

    def keep(item: T) -> bool:
        if frame == "recent":
            d = _first_date(item, ("due_at", "posted_at", "created_at"))
            return d is not None and cutoff <= d <= now
        d = _first_date(item, ("due_at", "posted_at"))
        if d is None:
            return False
        return d > now if frame == "upcoming" else d < now

    return [i for i in items if keep(i)]


def filter_by_search_term(items: List[T], term: Optional[str]) -> List[T]:
    """Case-insensitive substring match on name/title or description/message."""
    if not term or not term.strip():
        return list(items)
    needle = term.strip().lower()
    out = []
    for item in items:
        title = getattr(item, "name", None) or getattr(item, "title", None) or ""
        body = getattr(item, "description", None) or getattr(item, "message", None) or ""
        if needle in title.lower() or needle in body.lower():
            out.append(item)
    return out
