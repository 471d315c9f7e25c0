"""Match a course reference from chat text against the user's course list."""

from typing import Iterable, List, Optional

from .models import Course


def find_course_by_name(courses: Optional[List[Course]], query: Optional[str]) -> Optional[Course]:
    """Case-insensitive exact name match first, then the first course whose name contains ``query``."""
    if not courses or not query or not query.strip():
        return None
    q = query.strip().lower()
    for course in courses:
        if course.name.lower() == q:
            return course
    for course in courses:
        if q in course.name.lower():
            return course
    return None


def find_course_by_id(courses: Iterable[Course], course_id: Optional[str]) -> Optional[Course]:
    if not course_id:
        return None
    for course in courses:
        if str(course.id) == str(course_id).strip():
            return course
    return None
