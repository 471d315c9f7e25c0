"""Canvas credential handling: pulling a token out of chat text, and a per-user store."""

import asyncio
import logging
import re
import weakref
from typing import Dict, Optional

from .models import Credential

logger = logging.getLogger(__name__)

# Canvas tokens always carry a digit or "~"; plain words after "token" are not values.
_VALUE = r"(?=[A-Za-z0-9_-]*[0-9~])([A-Za-z0-9~_-]{8,})"

# First pattern that matches anywhere wins, so specific phrasings come first
# and the bare "<digits>~<key>" shape is the last resort.
_CREDENTIAL_PATTERNS = [
    re.compile(rf"\btoken\s*=\s*{_VALUE}", re.IGNORECASE),
    re.compile(rf"\btoken\s*:\s*{_VALUE}", re.IGNORECASE),
    re.compile(rf"\btoken\s+is\s*:?\s*{_VALUE}", re.IGNORECASE),
    re.compile(rf"\btoken\s+{_VALUE}", re.IGNORECASE),
    re.compile(rf"\baccesstoken\s*[=:]?\s*{_VALUE}", re.IGNORECASE),
    re.compile(r"\b([0-9]+~[A-Za-z0-9_-]{20,})"),
]


def find_credential(text: Optional[str]) -> Optional["re.Match[str]"]:
    """Return the match for the first credential pattern found in ``text``."""
    if not text:
        return None
    for pattern in _CREDENTIAL_PATTERNS:
        m = pattern.search(text)
        if m and m.group(1):
            return m
    return None


def extract_credential(text: Optional[str]) -> Optional[str]:
    m = find_credential(text)
    return m.group(1) if m else None


def strip_credential(text: str) -> str:
    """Remove the credential phrase (e.g. ``token = 1234~...``) from ``text``."""
    m = find_credential(text)
    if not m:
        return text
    return f"{text[: m.start()]} {text[m.end():]}".strip()


def token_preview(token: Optional[str]) -> str:
    if not token:
        return "<none>"
    return f"{token[:8]}..."


class CredentialStore:
    """In-memory credential store keyed by user id.

    Reads and writes for the same user are serialised; concurrent saves
    resolve as last-write-wins.
    """

    def __init__(self) -> None:
        self._data: Dict[str, Credential] = {}
        # Locks live only while some get/save holds them.
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    async def get(self, user_id: str) -> Optional[Credential]:
        async with self._lock(user_id):
            return self._data.get(user_id)

    async def save(self, user_id: str, credential: Credential) -> None:
        async with self._lock(user_id):
            self._data[user_id] = credential
        logger.info("Stored Canvas token %s for user %s", token_preview(credential.token), user_id)
