"""Core data models for the Canvas agent.

This module defines:

- Canvas entities (``Course``, ``Assignment``, ``Announcement``, ``Module``,
  ``Tab``). They are validated straight from Canvas JSON, so field names follow
  the Canvas REST payloads. Items fetched through a course are tagged with
  ``course_id``/``course_name`` by ``canvas_agent.canvas``.

- ``Intent``: what the classifier decided the user is asking for. The same
  model is the structured ``output_type`` of the classification agent.

- ``ChatTurn`` / ``AgentResponse``: the contract with the HTTP layer.
  ``app.py`` passes a list of ``ChatTurn`` into
  ``CanvasQueryAgent.process_turn`` and serialises the ``AgentResponse``.

- Result union (``CoursesResult`` ... ``AnnouncementDetailResult``): one shape
  per action, keyed by ``kind``. The orchestrator builds one and
  ``canvas_agent.formatting.format_result`` renders it.

- ``Ok`` / ``Empty``: what every ``CanvasClient`` call returns. Upstream
  failures never raise past the client; they come back as ``Empty`` with the
  reason attached.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Generic, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from .config import CANVAS_URL


Action = Literal["list_courses", "list_announcements", "list_assignments", "get_modules"]
TimeFrame = Literal["upcoming", "past", "recent", "all"]

TIME_FRAMES = ("upcoming", "past", "recent", "all")


class Term(BaseModel):
    name: Optional[str] = None


class Course(BaseModel):
    id: int
    name: str
    course_code: Optional[str] = None
    term: Optional[Term] = None

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name"):
            data = {**data, "name": f"Course {data.get('id')}"}
        return data


class Assignment(BaseModel):
    id: int
    name: str = ""
    description: Optional[str] = None
    due_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    points_possible: Optional[float] = None
    submission_types: List[str] = Field(default_factory=list)
    has_submitted_submissions: Optional[bool] = None
    html_url: Optional[str] = None
    course_id: Optional[int] = None
    course_name: Optional[str] = None


class Announcement(BaseModel):
    id: int
    title: str = ""
    message: Optional[str] = None
    posted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    html_url: Optional[str] = None
    course_id: Optional[int] = None
    course_name: Optional[str] = None


class Module(BaseModel):
    id: int
    name: str = ""
    state: Optional[str] = None
    items_count: Optional[int] = None
    position: Optional[int] = None
    published: Optional[bool] = None
    course_id: Optional[int] = None
    course_name: Optional[str] = None


class Tab(BaseModel):
    id: str
    label: str = ""
    type: Optional[str] = None
    html_url: Optional[str] = None


def _blank_to_none(v: Any) -> Any:
    if v is None:
        return None
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(int(v))
    if isinstance(v, str) and v.strip().lower() in ("", "null", "none"):
        return None
    return v


class Intent(BaseModel):
    action: Action = Field(description="Which Canvas data the user wants.")
    course_id: Optional[str] = Field(default=None, description="Numeric course ID if the user gave one.")
    course_name: Optional[str] = Field(default=None, description="Course name (or part of it) if mentioned.")
    time_frame: Optional[TimeFrame] = Field(
        default=None, description="upcoming, past, recent or all, if the user narrowed by time."
    )
    search_term: Optional[str] = Field(default=None, description="Keyword the user is looking for, if any.")
    item_id: Optional[str] = Field(
        default=None, description="Assignment or announcement ID when the user asks about one item."
    )

    @field_validator("course_id", "course_name", "search_term", "item_id", mode="before")
    @classmethod
    def _clean_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("time_frame", mode="before")
    @classmethod
    def _known_time_frame(cls, v: Any) -> Any:
        if not isinstance(v, str):
            return None
        v = v.strip().lower()
        return v if v in TIME_FRAMES else None


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Credential(BaseModel):
    # Never printed in full; see credentials.token_preview.
    token: str = Field(repr=False)
    base_url: str = CANVAS_URL


class AgentResponse(BaseModel):
    content: str
    is_final: bool = True
    search_needed: bool = False
    # Newly observed credential for the caller to persist; not part of the wire format.
    credential: Optional[Credential] = Field(default=None, exclude=True)


class Scope(BaseModel):
    course_id: Optional[str] = None
    course_name: Optional[str] = None

    @property
    def unscoped(self) -> bool:
        return not self.course_id and not self.course_name


class CoursesResult(BaseModel):
    kind: Literal["courses"] = "courses"
    courses: List[Course]


class AssignmentsResult(BaseModel):
    kind: Literal["assignments"] = "assignments"
    scope: Scope
    assignments: List[Assignment]


class AnnouncementsResult(BaseModel):
    kind: Literal["announcements"] = "announcements"
    scope: Scope
    announcements: List[Announcement]


class ModulesResult(BaseModel):
    kind: Literal["modules"] = "modules"
    scope: Scope
    modules: List[Module]
    tabs: List[Tab] = Field(default_factory=list)


class AssignmentDetailResult(BaseModel):
    kind: Literal["assignment_detail"] = "assignment_detail"
    scope: Scope
    item_id: str
    assignment: Optional[Assignment] = None


class AnnouncementDetailResult(BaseModel):
    kind: Literal["announcement_detail"] = "announcement_detail"
    scope: Scope
    item_id: str
    announcement: Optional[Announcement] = None


TurnResult = Annotated[
    Union[
        CoursesResult,
        AssignmentsResult,
        AnnouncementsResult,
        ModulesResult,
        AssignmentDetailResult,
        AnnouncementDetailResult,
    ],
    Field(discriminator="kind"),
]


class FailureKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    HTTP_ERROR = "http_error"
    TIMEOUT = "timeout"
    NETWORK = "network"
    INVALID_PAYLOAD = "invalid_payload"


T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    data: T

    def unwrap_or(self, default: Any) -> T:
        return self.data


@dataclass(frozen=True)
class Empty:
    reason: FailureKind
    status_code: Optional[int] = None

    def unwrap_or(self, default: Any) -> Any:
        return default


Fetched = Union[Ok[T], Empty]
