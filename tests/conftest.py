"""Shared pytest fixtures for the canvas_agent test suite.

These fixtures provide:
* A fake Canvas REST API served through ``httpx.MockTransport``
* Canned courses, assignments, announcements and modules
* PydanticAI model doubles (echoing, failing) for the classifier and renderer
* A factory that wires a ``CanvasQueryAgent`` from those pieces
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from pydantic_ai import models
from pydantic_ai.messages import ModelMessage, ModelResponse, TextPart, UserPromptPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from canvas_agent.canvas import CanvasClient
from canvas_agent.classifier import IntentClassifier
from canvas_agent.core import build_classifier_agent, build_renderer_agent
from canvas_agent.credentials import CredentialStore
from canvas_agent.models import Credential
from canvas_agent.orchestrator import CanvasQueryAgent
from canvas_agent.renderer import ConversationalRenderer

# No test may reach a real LLM provider.
models.ALLOW_MODEL_REQUESTS = False

TOKEN = "1234~abcdEFGHijklmnopQRSTuv"
BASE_URL = "https://canvas.example.edu"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


# ---------------------------------------------------------------------------
# Fake Canvas API
# ---------------------------------------------------------------------------


Route = Tuple[int, Any]


class FakeCanvas:
    """Routes ``/api/v1`` paths to canned JSON and records every request."""

    def __init__(self) -> None:
        self.routes: Dict[str, Route] = {}
        self.requests: List[httpx.Request] = []

    def add(self, path: str, payload: Any = None, status: int = 200) -> None:
        self.routes[path] = (status, payload)

    def add_courses(self, courses: List[Dict[str, Any]], fail_on_page: Optional[int] = None) -> None:
        """Serve ``courses`` with Canvas-style ``page``/``per_page`` paging."""

        def handler(request: httpx.Request) -> httpx.Response:
            page = int(request.url.params.get("page", "1"))
            per_page = int(request.url.params.get("per_page", "10"))
            if fail_on_page is not None and page == fail_on_page:
                return httpx.Response(500, json={"errors": [{"message": "boom"}]})
            start = (page - 1) * per_page
            return httpx.Response(200, json=courses[start:start + per_page])

        self.routes["/courses"] = (200, handler)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/api/v1"):
            path = path[len("/api/v1"):]
        route = self.routes.get(path)
        if route is None:
            return httpx.Response(404, json={"errors": [{"message": "The specified resource does not exist."}]})
        status, payload = route
        if callable(payload):
            return payload(request)
        return httpx.Response(status, json=payload)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self, credential: Optional[Credential] = None, **kwargs: Any) -> CanvasClient:
        return CanvasClient(credential or Credential(token=TOKEN, base_url=BASE_URL), transport=self.transport(), **kwargs)

    def factory(self) -> Callable[[Credential], CanvasClient]:
        return lambda credential: CanvasClient(credential, transport=self.transport())

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def fake_canvas() -> FakeCanvas:
    return FakeCanvas()


@pytest.fixture
def credential() -> Credential:
    return Credential(token=TOKEN, base_url=BASE_URL)


# ---------------------------------------------------------------------------
# Sample Canvas data
# ---------------------------------------------------------------------------


def _iso(dt: datetime) -> str:
    return dt.replace(microsecond=0).isoformat().replace("+00:00", "Z")


@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def sample_courses() -> List[Dict[str, Any]]:
    return [
        {"id": 101, "name": "Computer Systems 101", "course_code": "CS101", "term": {"name": "Fall 2026"}},
        {"id": 202, "name": "Data Structures", "course_code": "CS202", "term": {"name": "Fall 2026"}},
    ]


@pytest.fixture
def sample_assignments(now: datetime) -> List[Dict[str, Any]]:
    return [
        {
            "id": 3,
            "name": "Lab 2: Caches",
            "due_at": _iso(now + timedelta(days=6)),
            "points_possible": 20,
            "submission_types": ["online_upload"],
            "course_id": 101,
        },
        {
            "id": 1,
            "name": "Lab 0: Setup",
            "due_at": _iso(now - timedelta(days=2)),
            "points_possible": 5,
            "submission_types": ["online_text_entry"],
            "course_id": 101,
        },
        {
            "id": 2,
            "name": "Lab 1: Bits and Bytes",
            "due_at": _iso(now + timedelta(days=2)),
            "points_possible": 10.5,
            "description": "<p>Implement the <b>bit puzzles</b>.</p>",
            "course_id": 101,
        },
    ]


@pytest.fixture
def sample_announcements(now: datetime) -> List[Dict[str, Any]]:
    return [
        {"id": 11, "title": "Welcome!", "message": "<p>Welcome to the course.</p>", "posted_at": _iso(now - timedelta(days=20))},
        {"id": 12, "title": "Midterm room change", "message": "<p>The midterm moves to room 4.</p>", "posted_at": _iso(now - timedelta(days=1))},
    ]


@pytest.fixture
def sample_modules() -> List[Dict[str, Any]]:
    return [
        {"id": 31, "name": "Week 1: Introduction", "state": "completed", "items_count": 4},
        {"id": 32, "name": "Week 2: Memory", "state": "active", "items_count": 6},
    ]


# ---------------------------------------------------------------------------
# LLM doubles
# ---------------------------------------------------------------------------


def history_text(messages: List[ModelMessage]) -> List[str]:
    """Text parts of every message before the latest request, oldest first."""
    texts = []
    for message in messages[:-1]:
        for part in message.parts:
            if isinstance(part, (UserPromptPart, TextPart)) and isinstance(part.content, str):
                texts.append(part.content)
    return texts


def prompt_text(messages: List[ModelMessage]) -> str:
    """Text of the user prompt in the latest model request."""
    text = ""
    for part in getattr(messages[-1], "parts", []):
        if isinstance(part, UserPromptPart) and isinstance(part.content, str):
            text = part.content
    return text


class RecordingModel(FunctionModel):
    """FunctionModel that remembers each prompt, and the full conversation, it was sent."""

    def __init__(self, reply: Optional[Callable[[str], str]] = None, fail: bool = False) -> None:
        self.prompts: List[str] = []
        self.conversations: List[List[ModelMessage]] = []

        def respond(messages: List[ModelMessage], info: AgentInfo) -> ModelResponse:
            prompt = prompt_text(messages)
            self.prompts.append(prompt)
            self.conversations.append(list(messages))
            if fail:
                raise RuntimeError("LLM backend unavailable")
            return ModelResponse(parts=[TextPart(reply(prompt) if reply else prompt)])

        super().__init__(respond)

    def earlier_turns(self, call: int = -1) -> List[str]:
        """Texts the given call carried ahead of its own prompt."""
        return history_text(self.conversations[call])


@pytest.fixture
def make_model() -> Callable[..., RecordingModel]:
    return RecordingModel


@pytest.fixture
def echo_model() -> RecordingModel:
    """Renderer double that replies with the prompt it was given."""
    return RecordingModel()


@pytest.fixture
def failing_model() -> RecordingModel:
    return RecordingModel(fail=True)


# ---------------------------------------------------------------------------
# Wired agent
# ---------------------------------------------------------------------------


@pytest.fixture
def make_agent(fake_canvas: FakeCanvas) -> Callable[..., CanvasQueryAgent]:
    def _make(
        classifier_model: Any = None,
        renderer_model: Any = None,
        store: Optional[CredentialStore] = None,
    ) -> CanvasQueryAgent:
        return CanvasQueryAgent(
            classifier=IntentClassifier(build_classifier_agent(classifier_model or RecordingModel(fail=True))),
            renderer=ConversationalRenderer(build_renderer_agent(renderer_model or RecordingModel())),
            client_factory=fake_canvas.factory(),
            store=store,
        )

    return _make
