"""
Server-side entrypoint (FastAPI).

- Exposes `/health` and `/chat` HTTP endpoints.
- Keeps an in-memory per-user Canvas credential store and hands each chat turn
  to the `CanvasQueryAgent` from the `canvas_agent/` package.
- Delegates all Canvas and LLM logic to `canvas_agent/`; this file stays thin
  and only handles HTTP and request/response wiring.
"""
import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from canvas_agent import CanvasQueryAgent, ChatTurn, CredentialStore
from canvas_agent.config import LOG_LEVEL

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Canvas Query Agent", version="1.0.0")

credential_store = CredentialStore()
_query_agent: Optional[CanvasQueryAgent] = None


def get_query_agent() -> CanvasQueryAgent:
    global _query_agent
    if _query_agent is None:
        _query_agent = CanvasQueryAgent(store=credential_store)
    return _query_agent


@app.get("/health")
async def health() -> dict:
    return {"ok": True}


class ChatRequest(BaseModel):
    message: str
    chat_history: List[ChatTurn] = Field(default_factory=list)
    user_id: Optional[str] = Field(None, description="Stable id used to remember the user's Canvas token")


class ChatReply(BaseModel):
    message: str
    chat_history: List[ChatTurn]
    is_final: bool
    search_needed: bool


@app.post("/chat", response_model=ChatReply)
async def chat(req: ChatRequest, query_agent: CanvasQueryAgent = Depends(get_query_agent)) -> ChatReply:
    if not req.message.strip():
        raise HTTPException(400, "message is required")

    history = list(req.chat_history)
    history.append(ChatTurn(role="user", content=req.message))
    logger.info("Chat turn for user %s (%d prior turns)", req.user_id or "anonymous", len(req.chat_history))

    response = await query_agent.process_turn(history, user_id=req.user_id)

    history.append(ChatTurn(role="assistant", content=response.content))
    return ChatReply(
        message=response.content,
        chat_history=history,
        is_final=response.is_final,
        search_needed=response.search_needed,
    )
