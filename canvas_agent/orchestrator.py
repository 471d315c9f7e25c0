"""Per-turn orchestration of the Canvas query pipeline.

``CanvasQueryAgent.process_turn`` walks one chat turn through
credential lookup, intent classification, course resolution, Canvas fetches,
filtering, formatting and conversational rendering. Collaborators (classifier,
renderer, Canvas client factory, credential store) are injected so tests can
swap in fakes.

Every turn ends in an ``AgentResponse``: a templated reply for a missing
credential or an unknown course, the rendered answer, or a generic apology when
anything unexpected goes wrong. Raw exceptions never reach the chat.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .canvas import CanvasClient
from .classifier import IntentClassifier
from .config import CANVAS_URL
from .credentials import CredentialStore, extract_credential, strip_credential, token_preview
from .filters import filter_by_search_term, filter_by_time_frame
from .formatting import format_result
from .models import (
    AgentResponse,
    AnnouncementDetailResult,
    AnnouncementsResult,
    AssignmentDetailResult,
    AssignmentsResult,
    ChatTurn,
    Course,
    CoursesResult,
    Credential,
    Intent,
    ModulesResult,
    Scope,
    TurnResult,
)
from .renderer import ConversationalRenderer
from .resolver import find_course_by_id, find_course_by_name

logger = logging.getLogger(__name__)

MISSING_CREDENTIAL_REPLY = (
    "I need your Canvas API token to access your Canvas data. Please provide it in your message. "
    "For example: 'My Canvas token is 1234~abcdefg'"
)
APOLOGY_REPLY = (
    "I'm sorry, something went wrong while I was looking up your Canvas data. Please try again in a moment."
)
DEFAULT_QUERY = "Show me my Canvas courses."

ClientFactory = Callable[[Credential], CanvasClient]


def course_not_found_reply(name: str) -> str:
    return (
        f'I couldn\'t find a course matching "{name}" in your Canvas account. '
        "Please check the course name, or ask me to list your courses to see their exact names."
    )


class TurnState(str, Enum):
    AWAITING_CREDENTIAL = "awaiting_credential"
    CLASSIFYING = "classifying"
    RESOLVING = "resolving"
    FETCHING = "fetching"
    FILTERING = "filtering"
    FORMATTING = "formatting"
    RENDERING = "rendering"
    DONE = "done"
    ERRORED = "errored"


class CourseNotFound(Exception):
    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name


class _Turn:
    def __init__(self) -> None:
        self.state = TurnState.AWAITING_CREDENTIAL

    def advance(self, state: TurnState) -> None:
        logger.debug("Turn %s -> %s", self.state.value, state.value)
        self.state = state


def _split_history(chat_history: List[ChatTurn]) -> Tuple[str, List[ChatTurn]]:
    """The latest user message and the turns before it."""
    for index in range(len(chat_history) - 1, -1, -1):
        if chat_history[index].role == "user":
            return chat_history[index].content, chat_history[:index]
    raise ValueError("chat history contains no user message")


class CanvasQueryAgent:
    """Answers one chat turn about the user's Canvas data."""

    def __init__(
        self,
        classifier: Optional[IntentClassifier] = None,
        renderer: Optional[ConversationalRenderer] = None,
        client_factory: Optional[ClientFactory] = None,
        store: Optional[CredentialStore] = None,
    ) -> None:
        self.classifier = classifier or IntentClassifier()
        self.renderer = renderer or ConversationalRenderer()
        self.client_factory = client_factory or CanvasClient
        self.store = store

    async def process_turn(
        self,
        chat_history: List[ChatTurn],
        stored_credential: Optional[Credential] = None,
        user_id: Optional[str] = None,
    ) -> AgentResponse:
        turn = _Turn()
        new_credential: Optional[Credential] = None
        try:
            message, earlier = _split_history(chat_history)
            credential, new_credential = await self._resolve_credential(message, stored_credential, user_id)
            if credential is None:
                logger.info("No Canvas token available; asking the user for one")
                turn.advance(TurnState.DONE)
                return AgentResponse(content=MISSING_CREDENTIAL_REPLY)

            query = strip_credential(message) or DEFAULT_QUERY
            turn.advance(TurnState.CLASSIFYING)
            intent = await self.classifier.classify(query)

            async with self.client_factory(credential) as canvas:
                result = await self._collect(canvas, intent, turn)

            turn.advance(TurnState.FORMATTING)
            formatted = format_result(result)
            turn.advance(TurnState.RENDERING)
            content = await self.renderer.render(query, formatted, earlier)
            turn.advance(TurnState.DONE)
            return AgentResponse(content=content, credential=new_credential)
        except CourseNotFound as e:
            logger.info("No course matches %r; ending turn", e.name)
            turn.advance(TurnState.DONE)
            return AgentResponse(content=course_not_found_reply(e.name), credential=new_credential)
        except Exception:
            logger.exception("Canvas turn failed while %s", turn.state.value)
            turn.advance(TurnState.ERRORED)
            return AgentResponse(content=APOLOGY_REPLY, credential=new_credential)

    async def _resolve_credential(
        self, message: str, stored: Optional[Credential], user_id: Optional[str]
    ) -> Tuple[Optional[Credential], Optional[Credential]]:
        """Return (credential to use, credential newly observed in this message)."""
        if stored is None and self.store is not None and user_id:
            stored = await self.store.get(user_id)
        token = extract_credential(message)
        if not token:
            return stored, None
        logger.info("Canvas token found in message: %s", token_preview(token))
        credential = Credential(token=token, base_url=stored.base_url if stored else CANVAS_URL)
        if stored is not None and stored.token == token:
            return credential, None
        if self.store is not None and user_id:
            try:
                await self.store.save(user_id, credential)
            except Exception:
                logger.exception("Could not store Canvas token for user %s", user_id)
        return credential, credential

    async def _resolve_scope(self, canvas: CanvasClient, intent: Intent) -> Tuple[Scope, Optional[Course]]:
        if intent.course_id:
            courses = (await canvas.list_all_courses()).unwrap_or([])
            return Scope(course_id=intent.course_id), find_course_by_id(courses, intent.course_id)
        if intent.course_name:
            courses = (await canvas.list_all_courses()).unwrap_or([])
            course = find_course_by_name(courses, intent.course_name)
            if course is None:
                raise CourseNotFound(intent.course_name)
            logger.info("Resolved %r to course %s (%s)", intent.course_name, course.id, course.name)
            return Scope(course_id=str(course.id), course_name=course.name), course
        return Scope(), None

    async def _collect(self, canvas: CanvasClient, intent: Intent, turn: _Turn) -> TurnResult:
        if intent.action == "list_courses":
            turn.advance(TurnState.FETCHING)
            courses = (await canvas.list_all_courses()).unwrap_or([])
            turn.advance(TurnState.FILTERING)
            return CoursesResult(courses=filter_by_search_term(courses, intent.search_term))

        turn.advance(TurnState.RESOLVING)
        scope, course = await self._resolve_scope(canvas, intent)
        course_id = scope.course_id
        course_name = course.name if course else None

        turn.advance(TurnState.FETCHING)
        if intent.action == "list_assignments":
            if intent.item_id and course_id:
                fetched = await canvas.get_assignment_details(course_id, intent.item_id, course_name)
                return AssignmentDetailResult(scope=scope, item_id=intent.item_id, assignment=fetched.unwrap_or(None))
            if course_id:
                assignments = (await canvas.get_course_assignments(course_id, course_name)).unwrap_or([])
            else:
                assignments = (await canvas.list_all_assignments()).unwrap_or([])
            turn.advance(TurnState.FILTERING)
            assignments = filter_by_search_term(filter_by_time_frame(assignments, intent.time_frame), intent.search_term)
            return AssignmentsResult(scope=scope, assignments=assignments)

        if intent.action == "list_announcements":
            if intent.item_id and course_id:
                fetched = await canvas.get_announcement_details(course_id, intent.item_id, course_name)
                return AnnouncementDetailResult(
                    scope=scope, item_id=intent.item_id, announcement=fetched.unwrap_or(None)
                )
            if course_id:
                announcements = (await canvas.get_course_announcements(course_id, course_name)).unwrap_or([])
            else:
                announcements = (await canvas.list_all_announcements()).unwrap_or([])
            turn.advance(TurnState.FILTERING)
            announcements = filter_by_search_term(
                filter_by_time_frame(announcements, intent.time_frame), intent.search_term
            )
            return AnnouncementsResult(scope=scope, announcements=announcements)

        if intent.action == "get_modules":
            tabs = []
            if course_id:
                modules = (await canvas.get_course_modules(course_id, course_name)).unwrap_or([])
                tabs = (await canvas.get_course_tabs(course_id)).unwrap_or([])
            else:
                modules = (await canvas.list_all_modules()).unwrap_or([])
            turn.advance(TurnState.FILTERING)
            return ModulesResult(scope=scope, modules=filter_by_search_term(modules, intent.search_term), tabs=tabs)

        raise ValueError(f"Unsupported action: {intent.action}")
