"""Render Canvas results as markdown-ish text.

This text is what the conversational renderer relays, and what the user sees
verbatim when the LLM is unavailable, so every branch produces a heading and at
least one body line.
"""

from datetime import datetime, timezone
from typing import List, Optional

from .config import DEFAULT_TZ
from .models import (
    Announcement,
    AnnouncementDetailResult,
    AnnouncementsResult,
    Assignment,
    AssignmentDetailResult,
    AssignmentsResult,
    Course,
    CoursesResult,
    Module,
    ModulesResult,
    Scope,
    Tab,
    TurnResult,
)
from .utils import as_aware, excerpt, local_display, strip_html, utcnow

MAX_UNSCOPED_ANNOUNCEMENTS = 10
ANNOUNCEMENT_EXCERPT = 100
DESCRIPTION_EXCERPT = 200

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _heading(label: str, scope: Scope, unscoped_title: str) -> str:
    if scope.course_name:
        return f"## {label} from {scope.course_name}\n\n"
    if scope.course_id:
        return f"## {label} from Course ID: {scope.course_id}\n\n"
    return f"## {unscoped_title}\n\n"


def _points(value: float) -> str:
    return f"{value:g}"


def format_courses(courses: List[Course]) -> str:
    out = "## Your Canvas Courses\n\n"
    if not courses:
        return out + "No courses found in your Canvas account.\n"
    for n, course in enumerate(courses, 1):
        out += f"{n}. **{course.name}** (ID: {course.id})\n"
        if course.course_code:
            out += f"   - Course Code: {course.course_code}\n"
        if course.term and course.term.name:
            out += f"   - Term: {course.term.name}\n"
    return out


def sort_assignments(assignments: List[Assignment]) -> List[Assignment]:
    """Ascending by due date; undated assignments keep their order at the end."""
    return sorted(assignments, key=lambda a: (a.due_at is None, as_aware(a.due_at) if a.due_at else _EPOCH))


def format_assignments(
    assignments: List[Assignment],
    scope: Scope,
    now: Optional[datetime] = None,
    tz_name: str = DEFAULT_TZ,
) -> str:
    out = _heading("Assignments", scope, "Assignments Across All Courses")
    if not assignments:
        return out + "No assignments found.\n"
    now = as_aware(now or utcnow())
    for n, a in enumerate(sort_assignments(assignments), 1):
        out += f"{n}. **{a.name}** (ID: {a.id})\n"
        if a.course_name:
            out += f"   - Course: {a.course_name}\n"
        if a.due_at:
            flag = " (Past Due)" if as_aware(a.due_at) < now else ""
            out += f"   - Due: {local_display(a.due_at, tz_name)}{flag}\n"
        else:
            out += "   - Due: No due date\n"
        if a.points_possible is not None:
            out += f"   - Points: {_points(a.points_possible)}\n"
        if a.submission_types:
            out += f"   - Submission Type: {', '.join(a.submission_types)}\n"
        if a.description:
            out += f'   - Description: "{excerpt(a.description, DESCRIPTION_EXCERPT)}"\n'
        out += "---\n"
    return out


def sort_announcements(announcements: List[Announcement]) -> List[Announcement]:
    """Newest first; undated announcements last."""
    return sorted(
        announcements,
        key=lambda a: as_aware(a.posted_at) if a.posted_at else _EPOCH,
        reverse=True,
    )


def format_announcements(
    announcements: List[Announcement],
    scope: Scope,
    tz_name: str = DEFAULT_TZ,
) -> str:
    out = _heading("Announcements", scope, "Recent Announcements Across All Courses")
    if not announcements:
        return out + "No announcements found.\n"
    ordered = sort_announcements(announcements)
    if scope.unscoped and len(ordered) > MAX_UNSCOPED_ANNOUNCEMENTS:
        out += f"Showing the {MAX_UNSCOPED_ANNOUNCEMENTS} most recent of {len(ordered)} announcements.\n\n"
        ordered = ordered[:MAX_UNSCOPED_ANNOUNCEMENTS]
    for n, a in enumerate(ordered, 1):
        out += f"{n}. **{a.title}** (ID: {a.id})\n"
        if a.course_name:
            out += f"   - Course: {a.course_name}\n"
        if a.posted_at:
            out += f"   - Posted: {local_display(a.posted_at, tz_name)}\n"
        if a.message:
            out += f'   - Excerpt: "{excerpt(a.message, ANNOUNCEMENT_EXCERPT)}"\n'
        out += "---\n"
    return out


def format_tabs(tabs: List[Tab]) -> str:
    out = "## Course Tabs\n\n"
    if not tabs:
        return out + "No course tabs found.\n"
    for n, tab in enumerate(tabs, 1):
        out += f"{n}. **{tab.label}**"
        out += f" (Type: {tab.type})\n" if tab.type else "\n"
    return out


def format_modules(modules: List[Module], scope: Scope, tabs: Optional[List[Tab]] = None) -> str:
    out = _heading("Modules", scope, "Modules Across All Courses")
    if not modules:
        out += "No modules found.\n"
    for n, m in enumerate(modules, 1):
        out += f"{n}. **{m.name}** (ID: {m.id})\n"
        if m.course_name and scope.unscoped:
            out += f"   - Course: {m.course_name}\n"
        if m.items_count is not None:
            out += f"   - Items: {m.items_count}\n"
        if m.state:
            out += f"   - State: {m.state}\n"
        out += "---\n"
    if tabs:
        out += "\n" + format_tabs(tabs)
    return out


def format_assignment_details(
    assignment: Optional[Assignment],
    item_id: str,
    now: Optional[datetime] = None,
    tz_name: str = DEFAULT_TZ,
) -> str:
    if assignment is None:
        return f"## Assignment Details\n\nNo assignment found with ID {item_id}.\n"
    now = as_aware(now or utcnow())
    out = f"## Assignment Details: {assignment.name}\n\n"
    out += f"- **ID**: {assignment.id}\n"
    if assignment.course_name:
        out += f"- **Course**: {assignment.course_name}\n"
    if assignment.due_at:
        flag = " (Past Due)" if as_aware(assignment.due_at) < now else ""
        out += f"- **Due Date**: {local_display(assignment.due_at, tz_name)}{flag}\n"
    else:
        out += "- **Due Date**: No due date\n"
    if assignment.points_possible is not None:
        out += f"- **Points Possible**: {_points(assignment.points_possible)}\n"
    if assignment.submission_types:
        out += f"- **Submission Type**: {', '.join(assignment.submission_types)}\n"
    if assignment.has_submitted_submissions is not None:
        out += f"- **Submitted**: {'Yes' if assignment.has_submitted_submissions else 'No'}\n"
    if assignment.description:
        out += f"\n**Description**:\n{strip_html(assignment.description)}\n"
    return out


def format_announcement_details(
    announcement: Optional[Announcement],
    item_id: str,
    tz_name: str = DEFAULT_TZ,
) -> str:
    if announcement is None:
        return f"## Announcement Details\n\nNo announcement found with ID {item_id}.\n"
    out = f"## Announcement Details: {announcement.title}\n\n"
    out += f"- **ID**: {announcement.id}\n"
    if announcement.course_name:
        out += f"- **Course**: {announcement.course_name}\n"
    if announcement.posted_at:
        out += f"- **Posted**: {local_display(announcement.posted_at, tz_name)}\n"
    if announcement.message:
        out += f"\n**Message**:\n{strip_html(announcement.message)}\n"
    return out


def format_result(result: TurnResult, now: Optional[datetime] = None, tz_name: str = DEFAULT_TZ) -> str:
    if isinstance(result, CoursesResult):
        return format_courses(result.courses)
    if isinstance(result, AssignmentsResult):
        return format_assignments(result.assignments, result.scope, now=now, tz_name=tz_name)
    if isinstance(result, AnnouncementsResult):
        return format_announcements(result.announcements, result.scope, tz_name=tz_name)
    if isinstance(result, ModulesResult):
        return format_modules(result.modules, result.scope, result.tabs)
    if isinstance(result, AssignmentDetailResult):
        return format_assignment_details(result.assignment, result.item_id, now=now, tz_name=tz_name)
    if isinstance(result, AnnouncementDetailResult):
        return format_announcement_details(result.announcement, result.item_id, tz_name=tz_name)
    raise TypeError(f"Unknown result kind: {getattr(result, 'kind', type(result).__name__)}")
