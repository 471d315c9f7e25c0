"""Canvas REST client: courses, assignments, announcements, modules and tabs.

``CanvasClient`` is an async context manager around one ``httpx.AsyncClient``
bound to a single credential. Every call returns ``Ok(data)`` or
``Empty(reason)``; HTTP and network failures are logged here and never raised
to the caller. ``Fetched.unwrap_or([])`` gives the plain "empty list" view.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .config import CANVAS_FANOUT_CONCURRENCY, CANVAS_MAX_PAGES, CANVAS_PAGE_SIZE, CANVAS_TIMEOUT
from .credentials import token_preview
from .models import (
    Announcement,
    Assignment,
    Course,
    Credential,
    Empty,
    FailureKind,
    Fetched,
    Module,
    Ok,
    Tab,
)
from .utils import _headers, _json_or_empty, api_root

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _tags(course_id: Any = None, course_name: Optional[str] = None) -> Dict[str, Any]:
    tags: Dict[str, Any] = {}
    if course_id is not None and str(course_id).isdigit():
        tags["course_id"] = int(course_id)
    if course_name:
        tags["course_name"] = course_name
    return tags


def _parse_list(model: Type[M], payload: Any, tags: Optional[Dict[str, Any]] = None) -> Fetched[List[M]]:
    if not isinstance(payload, list):
        logger.warning("Expected a JSON list of %s, got %s", model.__name__, type(payload).__name__)
        return Empty(FailureKind.INVALID_PAYLOAD)
    out: List[M] = []
    for raw in payload:
        if not isinstance(raw, dict):
            continue
        try:
            out.append(model.model_validate({**raw, **(tags or {})}))
        except ValidationError as e:
            logger.warning("Skipping malformed %s %s (%d errors)", model.__name__, raw.get("id"), e.error_count())
    return Ok(out)


def _parse_one(model: Type[M], payload: Any, tags: Optional[Dict[str, Any]] = None) -> Fetched[M]:
    if not isinstance(payload, dict):
        return Empty(FailureKind.INVALID_PAYLOAD)
    try:
        return Ok(model.model_validate({**payload, **(tags or {})}))
    except ValidationError as e:
        logger.warning("Malformed %s payload (%d errors)", model.__name__, e.error_count())
        return Empty(FailureKind.INVALID_PAYLOAD)


class CanvasClient:
    """Read-only access to one user's Canvas data."""

    def __init__(
        self,
        credential: Credential,
        *,
        timeout: float = CANVAS_TIMEOUT,
        page_size: int = CANVAS_PAGE_SIZE,
        max_pages: int = CANVAS_MAX_PAGES,
        concurrency: int = CANVAS_FANOUT_CONCURRENCY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.credential = credential
        self.api_url = api_root(credential.base_url)
        self.timeout = timeout
        self.page_size = page_size
        self.max_pages = max_pages
        self.concurrency = max(1, concurrency)
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "CanvasClient":
        logger.debug("Opening Canvas client for %s (token %s)", self.api_url, token_preview(self.credential.token))
        self._http = httpx.AsyncClient(
            base_url=self.api_url,
            headers=_headers(self.credential.token),
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Fetched[Any]:
        if self._http is None:
            raise RuntimeError("CanvasClient must be entered with 'async with' before use")
        try:
            resp = await self._http.get(path, params=params)
        except httpx.TimeoutException:
            logger.warning("Canvas request timed out after %ss: %s", self.timeout, path)
            return Empty(FailureKind.TIMEOUT)
        except httpx.HTTPError as e:
            logger.warning("Canvas request error on %s: %s", path, e)
            return Empty(FailureKind.NETWORK)
        return _json_or_empty(resp)

    async def _list(
        self, path: str, model: Type[M], params: Optional[Dict[str, Any]] = None, tags: Optional[Dict[str, Any]] = None
    ) -> Fetched[List[M]]:
        fetched = await self._get(path, params)
        if isinstance(fetched, Empty):
            return fetched
        return _parse_list(model, fetched.data, tags)

    async def _one(self, path: str, model: Type[M], tags: Optional[Dict[str, Any]] = None) -> Fetched[M]:
        fetched = await self._get(path)
        if isinstance(fetched, Empty):
            return fetched
        return _parse_one(model, fetched.data, tags)

    # Courses

    async def list_courses(self) -> Fetched[List[Course]]:
        """First page of the user's courses."""
        return await self._list("/courses", Course, params={"per_page": 100, "include[]": ["term"]})

    async def list_all_courses(self) -> Fetched[List[Course]]:
        """All active courses, following ``page`` until Canvas returns an empty page.

        An error part-way through stops paging; whatever was collected so far is
        returned.
        """
        courses: List[Course] = []
        seen = set()
        for page in range(1, self.max_pages + 1):
            fetched = await self._get(
                "/courses",
                params={
                    "include[]": ["term"],
                    "enrollment_state": "active",
                    "page": page,
                    "per_page": self.page_size,
                },
            )
            if isinstance(fetched, Empty):
                if not courses:
                    return fetched
                logger.warning(
                    "Course pagination stopped at page %d (%s); keeping %d courses",
                    page,
                    fetched.reason.value,
                    len(courses),
                )
                break
            if not fetched.data:
                break
            batch = _parse_list(Course, fetched.data)
            if isinstance(batch, Empty):
                if not courses:
                    return batch
                break
            for course in batch.data:
                if course.id in seen:
                    continue
                seen.add(course.id)
                courses.append(course)
        else:
            logger.warning("Course pagination hit the %d page limit", self.max_pages)
        logger.info("Retrieved %d courses", len(courses))
        return Ok(courses)

    # Per-course listings

    async def get_course_assignments(self, course_id: Any, course_name: Optional[str] = None) -> Fetched[List[Assignment]]:
        return await self._list(
            f"/courses/{course_id}/assignments",
            Assignment,
            params={"per_page": 100},
            tags=_tags(course_id, course_name),
        )

    async def get_course_announcements(
        self, course_id: Any, course_name: Optional[str] = None
    ) -> Fetched[List[Announcement]]:
        """Announcements are discussion topics filtered with ``only_announcements``."""
        return await self._list(
            f"/courses/{course_id}/discussion_topics",
            Announcement,
            params={"only_announcements": True, "per_page": 100},
            tags=_tags(course_id, course_name),
        )

    async def get_course_modules(self, course_id: Any, course_name: Optional[str] = None) -> Fetched[List[Module]]:
        return await self._list(
            f"/courses/{course_id}/modules",
            Module,
            params={"per_page": 100},
            tags=_tags(course_id, course_name),
        )

    async def get_course_tabs(self, course_id: Any) -> Fetched[List[Tab]]:
        return await self._list(f"/courses/{course_id}/tabs", Tab)

    # Single items

    async def get_assignment_details(
        self, course_id: Any, assignment_id: Any, course_name: Optional[str] = None
    ) -> Fetched[Assignment]:
        return await self._one(
            f"/courses/{course_id}/assignments/{assignment_id}", Assignment, tags=_tags(course_id, course_name)
        )

    async def get_announcement_details(
        self, course_id: Any, topic_id: Any, course_name: Optional[str] = None
    ) -> Fetched[Announcement]:
        return await self._one(
            f"/courses/{course_id}/discussion_topics/{topic_id}", Announcement, tags=_tags(course_id, course_name)
        )

    # Fan-out across courses

    async def _fan_out(
        self,
        fetch: Callable[[Course], Awaitable[Fetched[List[M]]]],
        label: str,
        courses: Optional[List[Course]] = None,
    ) -> Fetched[List[M]]:
        if courses is None:
            fetched = await self.list_all_courses()
            if isinstance(fetched, Empty):
                return fetched
            courses = fetched.data
        sem = asyncio.Semaphore(self.concurrency)

        async def one(course: Course) -> Fetched[List[M]]:
            async with sem:
                return await fetch(course)

        results = await asyncio.gather(*(one(c) for c in courses))
        items: List[M] = []
        for course, res in zip(courses, results):
            if isinstance(res, Empty):
                logger.info("No %s from course %s (%s)", label, course.id, res.reason.value)
                continue
            items.extend(res.data)
        logger.info("Retrieved %d %s across %d courses", len(items), label, len(courses))
        return Ok(items)

    async def list_all_announcements(self, courses: Optional[List[Course]] = None) -> Fetched[List[Announcement]]:
        return await self._fan_out(
            lambda c: self.get_course_announcements(c.id, c.name), "announcements", courses
        )

    async def list_all_assignments(self, courses: Optional[List[Course]] = None) -> Fetched[List[Assignment]]:
        return await self._fan_out(lambda c: self.get_course_assignments(c.id, c.name), "assignments", courses)

    async def list_all_modules(self, courses: Optional[List[Course]] = None) -> Fetched[List[Module]]:
        return await self._fan_out(lambda c: self.get_course_modules(c.id, c.name), "modules", courses)
