"""Turn formatted Canvas data into a conversational reply."""

import logging
from typing import List, Optional, Sequence

from pydantic_ai import Agent
from pydantic_ai.messages import ModelMessage, ModelRequest, ModelResponse, TextPart, UserPromptPart

from .core import build_renderer_agent
from .credentials import strip_credential
from .models import ChatTurn

logger = logging.getLogger(__name__)

# Earlier chat turns handed to the model alongside the current query.
HISTORY_TURNS = 10


def build_prompt(user_message: str, formatted: str) -> str:
    return f"User query: {user_message}\n\nCanvas data:\n{formatted}"


def to_message_history(history: Optional[Sequence[ChatTurn]]) -> List[ModelMessage]:
    """The last ``HISTORY_TURNS`` turns as model messages, tokens removed.

    A conversation handed to the model has to open with a request, so
    assistant turns before the first kept user turn are dropped.
    """
    messages: List[ModelMessage] = []
    for turn in list(history or [])[-HISTORY_TURNS:]:
        if turn.role == "user":
            content = strip_credential(turn.content)
            if content:
                messages.append(ModelRequest(parts=[UserPromptPart(content=content)]))
        elif messages and turn.content.strip():
            messages.append(ModelResponse(parts=[TextPart(content=turn.content)]))
    return messages


class ConversationalRenderer:
    """One LLM call per turn; on any failure the formatted data is returned as-is."""

    def __init__(self, agent: Optional[Agent[None, str]] = None) -> None:
        self.agent = agent or build_renderer_agent()

    async def render(self, user_message: str, formatted: str, history: Optional[Sequence[ChatTurn]] = None) -> str:
        message_history = to_message_history(history)
        try:
            result = await self.agent.run(
                build_prompt(user_message, formatted), message_history=message_history or None
            )
        except Exception as e:
            logger.warning("Conversational rendering failed (%s); returning formatted data", e)
            return formatted
        reply = (result.output or "").strip()
        if not reply:
            logger.warning("Renderer returned an empty reply; returning formatted data")
            return formatted
        return reply
