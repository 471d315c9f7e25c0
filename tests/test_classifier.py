"""Unit tests for the rule-based and LLM-backed intent classification."""

import pytest
from pydantic_ai.models.test import TestModel

from canvas_agent.classifier import (
    IntentClassifier,
    classify_rules,
    extract_course_name,
    extract_search_term,
    extract_time_frame,
)
from canvas_agent.core import build_classifier_agent
from canvas_agent.models import Intent


@pytest.mark.unit
@pytest.mark.parametrize(
    "message,action",
    [
        ("Any new announcements?", "list_announcements"),
        ("What's the latest news?", "list_announcements"),
        ("Show me my homework", "list_assignments"),
        ("What is due this week?", "list_assignments"),
        ("What modules are in Biology?", "get_modules"),
        ("Show me the course material", "get_modules"),
        ("Show me my courses", "list_courses"),
        ("list all", "list_courses"),
    ],
)
def test_rule_actions(message, action):
    assert classify_rules(message).action == action


@pytest.mark.unit
def test_announcements_outrank_assignments():
    """Keyword categories are checked in a fixed order; announcements come first."""
    assert classify_rules("Any announcement about the assignment?").action == "list_announcements"


@pytest.mark.unit
@pytest.mark.parametrize("message", ["Hello there", "What's the weather like?", ""])
def test_no_keyword_means_no_rule_intent(message):
    assert classify_rules(message) is None


@pytest.mark.unit
def test_scoped_upcoming_assignments():
    intent = classify_rules("Show me upcoming assignments for Computer Systems 101")
    assert intent == Intent(action="list_assignments", course_name="Computer Systems 101", time_frame="upcoming")


@pytest.mark.unit
def test_course_id_takes_precedence_over_name():
    intent = classify_rules("What modules are in course 12345?")
    assert intent.action == "get_modules"
    assert intent.course_id == "12345"
    assert intent.course_name is None


@pytest.mark.unit
def test_item_id_is_not_mistaken_for_course_id():
    intent = classify_rules("Tell me about assignment 42 in course 101")
    assert intent.item_id == "42"
    assert intent.course_id == "101"


@pytest.mark.unit
def test_course_listing_keeps_only_search_term():
    intent = classify_rules('Show me my courses called "Biology"')
    assert intent == Intent(action="list_courses", search_term="Biology")


@pytest.mark.unit
@pytest.mark.parametrize(
    "message,name",
    [
        ("announcements from Data Structures", "Data Structures"),
        ("assignments in my Biology class this week", "Biology"),
        ("homework for the Intro to Psychology course", "Intro to Psychology"),
        ("Show assignments for course Data Structures", "Data Structures"),
        ("announcements in the course Data Structures", "Data Structures"),
        ("modules for class Biology", "Biology"),
        ("assignments for all my courses", None),
        ("what is due", None),
    ],
)
def test_course_name_extraction(message, name):
    assert extract_course_name(message) == name


@pytest.mark.unit
@pytest.mark.parametrize(
    "message,frame",
    [
        ("upcoming assignments", "upcoming"),
        ("what's coming up", "upcoming"),
        ("overdue homework", "past"),
        ("recent announcements", "recent"),
        ("anything new?", "recent"),
        ("What is due this week?", None),
        ("announcements from last week", "recent"),
        ("all assignments", None),
    ],
)
def test_time_frame_extraction(message, frame):
    assert extract_time_frame(message) == frame


@pytest.mark.unit
@pytest.mark.parametrize(
    "message,term",
    [
        ('assignments called "Lab 1"', "Lab 1"),
        ("announcements mentioning midterm", "midterm"),
        ("assignments named essay in Biology", "essay"),
        ("all assignments", None),
    ],
)
def test_search_term_extraction(message, term):
    assert extract_search_term(message) == term


@pytest.mark.unit
@pytest.mark.anyio
async def test_rules_hit_skips_the_llm(failing_model):
    classifier = IntentClassifier(build_classifier_agent(failing_model))
    intent = await classifier.classify("Show me upcoming assignments")
    assert intent.action == "list_assignments"
    assert failing_model.prompts == []


@pytest.mark.unit
@pytest.mark.anyio
async def test_llm_fallback_uses_structured_output():
    model = TestModel(custom_output_args={"action": "get_modules", "course_name": "Biology", "time_frame": "soon"})
    classifier = IntentClassifier(build_classifier_agent(model))
    intent = await classifier.classify("What will we study in Biology?")
    assert intent.action == "get_modules"
    assert intent.course_name == "Biology"
    assert intent.time_frame is None


@pytest.mark.unit
@pytest.mark.anyio
async def test_llm_failure_defaults_to_courses_after_one_attempt(failing_model):
    classifier = IntentClassifier(build_classifier_agent(failing_model))
    intent = await classifier.classify("Hello there")
    assert intent == Intent(action="list_courses")
    assert failing_model.prompts == ["Hello there"]


@pytest.mark.unit
@pytest.mark.anyio
async def test_blank_message_lists_courses_without_llm(failing_model):
    classifier = IntentClassifier(build_classifier_agent(failing_model))
    assert (await classifier.classify("   ")).action == "list_courses"
    assert failing_model.prompts == []


@pytest.mark.unit
def test_intent_normalises_llm_values():
    intent = Intent.model_validate(
        {"action": "list_assignments", "course_id": 12345, "course_name": "null", "search_term": "", "time_frame": "ALL"}
    )
    assert intent.course_id == "12345"
    assert intent.course_name is None
    assert intent.search_term is None
    assert intent.time_frame == "all"
