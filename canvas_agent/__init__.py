"""Canvas agent package public API.

Exposes the turn orchestrator, its injectable collaborators, the response and
credential models, and the pure helpers (credential extraction, course lookup,
filters, formatting) used inside a turn.
"""

from .canvas import CanvasClient
from .classifier import IntentClassifier, classify_rules
from .config import DEFAULT_TZ
from .credentials import CredentialStore, extract_credential
from .filters import filter_by_search_term, filter_by_time_frame
from .formatting import format_result
from .models import AgentResponse, ChatTurn, Credential, Intent
from .orchestrator import CanvasQueryAgent
from .renderer import ConversationalRenderer
from .resolver import find_course_by_name

__all__ = [
    "AgentResponse",
    "CanvasClient",
    "CanvasQueryAgent",
    "ChatTurn",
    "ConversationalRenderer",
    "Credential",
    "CredentialStore",
    "DEFAULT_TZ",
    "Intent",
    "IntentClassifier",
    "classify_rules",
    "extract_credential",
    "filter_by_search_term",
    "filter_by_time_frame",
    "find_course_by_name",
    "format_result",
]
