"""Intent classification: keyword rules first, one LLM request only when they find nothing.

``classify_rules`` is deterministic and returns ``None`` when the message hits
no action keyword. ``IntentClassifier.classify`` runs it and, only on ``None``,
asks the classification agent once. Any LLM failure falls back to listing
courses so the turn never blocks on the model.
"""

import logging
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from pydantic_ai import Agent

from .core import build_classifier_agent
from .models import Intent

logger = logging.getLogger(__name__)


# Checked in this order; the first category with any keyword present wins.
_ACTION_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("list_announcements", ("announcement", "news", "update")),
    ("list_assignments", ("assignment", "homework", "due", "task")),
    ("get_modules", ("module", "content", "material")),
    ("list_courses", ("course", "class", "list all", "show me", "get all")),
]

_COURSE_ID_PATTERNS = [
    re.compile(r"\bcourse\s+id\s*:?\s*#?(\d+)", re.IGNORECASE),
    re.compile(r"\bcourse\s+#?(\d+)\b", re.IGNORECASE),
    re.compile(r"\bid\s*:?\s*#?(\d+)", re.IGNORECASE),
]

_ITEM_ID_RE = re.compile(r"\b(?:assignment|announcement)\s+(?:id\s*:?\s*)?#?(\d+)\b", re.IGNORECASE)

_END = r"\s*(?=[?!,;.]|$)"

_COURSE_NAME_PATTERNS = [
    re.compile(
        rf"\b{prep}\s+(?:my\s+)?([a-z0-9][a-z0-9&+\- ]*?)(?:\s+(?:class|course))?{_END}",
        re.IGNORECASE,
    )
    for prep in ("from", "in", "for")
]

_QUOTED_RE = re.compile(r"[\"“]([^\"”]{2,})[\"”]")
_NAMED_RE = re.compile(
    rf"\b(?:called|named|titled|mentioning|containing)\s+([a-z0-9][a-z0-9&+\- ]*?){_END}", re.IGNORECASE
)

_TIME_FRAME_PATTERNS = [
    ("upcoming", re.compile(r"\b(upcoming|coming up|next|soon|future|not yet due)\b", re.IGNORECASE)),
    ("past", re.compile(r"\b(past|previous|overdue|missed)\b", re.IGNORECASE)),
    ("recent", re.compile(r"\b(recent|recently|latest|newest|new|last week)\b", re.IGNORECASE)),
]

_NAME_STOPS = {
    "this", "next", "last", "past", "upcoming", "recent", "recently", "latest",
    "today", "tomorrow", "tonight", "week", "weeks", "month", "months", "day", "days",
    "due", "that", "which", "yet", "please", "now", "right", "so", "far",
    "called", "named", "titled", "mentioning", "containing", "about", "with",
}
_PREPOSITIONS = {"in", "for", "from", "due", "this", "next", "last"}
_GENERIC_NAMES = {
    "course", "courses", "class", "classes", "all", "all courses", "all classes", "all my courses",
    "my courses", "my classes", "every course", "canvas", "me", "us", "you", "it", "them", "general",
}


def _trim_phrase(phrase: str, stop_words: Iterable[str]) -> str:
    stops = set(stop_words)
    words = phrase.split()
    while words and words[0].lower() in ("the", "my"):
        words = words[1:]
    kept: List[str] = []
    for w in words:
        if w.lower() in stops:
            break
        kept.append(w)
    return " ".join(kept).strip(" -")


def _first_group(patterns: Sequence["re.Pattern[str]"], text: str) -> Optional[str]:
    for pattern in patterns:
        m = pattern.search(text)
        if m:
            return m.group(1)
    return None


def extract_course_id(text: str) -> Optional[str]:
    return _first_group(_COURSE_ID_PATTERNS, _ITEM_ID_RE.sub(" ", text))


def extract_item_id(text: str) -> Optional[str]:
    m = _ITEM_ID_RE.search(text)
    return m.group(1) if m else None


def extract_course_name(text: str) -> Optional[str]:
    """Phrase after from/in/for, cut at trailing time words; None for generic phrases."""
    for pattern in _COURSE_NAME_PATTERNS:
        for m in pattern.finditer(text):
            words = _trim_phrase(m.group(1), _NAME_STOPS).split()
            while len(words) > 1 and words[0].lower() in ("class", "course"):
                words.pop(0)
            while len(words) > 1 and words[-1].lower() in ("class", "course"):
                words.pop()
            name = " ".join(words)
            if name and name.lower() not in _GENERIC_NAMES and not name.isdigit():
                return name
    return None


def extract_time_frame(text: str) -> Optional[str]:
    for frame, pattern in _TIME_FRAME_PATTERNS:
        if pattern.search(text):
            return frame
    return None


def extract_search_term(text: str) -> Optional[str]:
    """Quoted text, else the phrase after "called"/"named"/... up to a preposition."""
    m = _QUOTED_RE.search(text)
    if m and m.group(1).strip():
        return m.group(1).strip()
    m = _NAMED_RE.search(text)
    if m:
        return _trim_phrase(m.group(1), _PREPOSITIONS) or None
    return None


def match_action(text: str) -> Optional[str]:
    lowered = text.lower()
    for action, keywords in _ACTION_KEYWORDS:
        if any(k in lowered for k in keywords):
            return action
    return None


def classify_rules(message: str) -> Optional[Intent]:
    """Deterministic classification; ``None`` means no action keyword matched."""
    action = match_action(message)
    if action is None:
        return None
    search_term = extract_search_term(message)
    if action == "list_courses":
        return Intent(action=action, search_term=search_term)
    course_id = extract_course_id(message)
    return Intent(
        action=action,
        course_id=course_id,
        course_name=None if course_id else extract_course_name(message),
        time_frame=extract_time_frame(message),
        search_term=search_term,
        item_id=extract_item_id(message),
    )


class IntentClassifier:
    """Two-stage classifier around an injected classification agent."""

    def __init__(self, agent: Optional[Agent[None, Intent]] = None) -> None:
        self.agent = agent or build_classifier_agent()

    async def classify(self, message: str) -> Intent:
        intent = classify_rules(message)
        if intent is not None:
            logger.info("Rule-based intent: %s", intent.model_dump(exclude_none=True))
            return intent
        if not message.strip():
            return Intent(action="list_courses")
        return await self._classify_with_llm(message)

    async def _classify_with_llm(self, message: str) -> Intent:
        try:
            result = await self.agent.run(message)
        except Exception as e:
            logger.warning("LLM intent classification failed (%s); defaulting to list_courses", e)
            return Intent(action="list_courses")
        logger.info("LLM intent: %s", result.output.model_dump(exclude_none=True))
        return result.output
