"""Agent core: builds the PydanticAI agents used by the classifier and renderer.

Both agents are built by factories rather than at import time so callers (and
tests) can hand in their own model. The model check is deferred, so a missing
API key only surfaces when a request is actually made, where the classifier and
renderer degrade gracefully.
"""

from typing import Optional, Union

from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings

from .config import LLM_TIMEOUT, MODEL_NAME
from .models import Intent


CLASSIFIER_INSTRUCTIONS = """
You are an expert Canvas LMS query analyzer. Decide which Canvas data the user's message asks for.

Possible actions:
- list_courses: the user wants to see their courses
- list_announcements: the user wants to see announcements
- list_assignments: the user wants to see assignments
- get_modules: the user wants to see modules or course content

Also fill in, only when the message states them:
- course_id: a numeric course ID
- course_name: the course name or part of it
- time_frame: upcoming, past, recent or all
- search_term: a specific keyword the user is looking for
- item_id: the ID of a single assignment or announcement
Leave every other field null. Never invent IDs or names.
"""

RENDERER_INSTRUCTIONS = """
You are a helpful Canvas LMS assistant that helps students access and understand their Canvas data.

Your task is to turn Canvas data into a friendly, conversational response.

Guidelines:
1. Be conversational and friendly in your responses.
2. Relay the Canvas data accurately: keep every name, ID, date and number exactly as given. Never add items that are not in the data.
3. Format the data in a clear and readable way.
4. If the data is empty or doesn't contain what the user is looking for, say so and suggest alternative queries they could try.
5. Always say what data you are showing (for example "Here are the assignments for Course X").
6. For dates, indicate whether assignments are past due or upcoming.

The user's query and the Canvas data will be provided to you.
"""

ModelLike = Union[Model, str]


def build_classifier_agent(model: Optional[ModelLike] = None) -> Agent[None, Intent]:
    """Structured intent classification: deterministic temperature, one attempt."""
    return Agent(
        model or MODEL_NAME,
        output_type=Intent,
        instructions=CLASSIFIER_INSTRUCTIONS,
        model_settings=ModelSettings(temperature=0.0, timeout=LLM_TIMEOUT),
        retries=0,
        defer_model_check=True,
    )


def build_renderer_agent(model: Optional[ModelLike] = None) -> Agent[None, str]:
    """Free-text conversational reply over pre-formatted Canvas data."""
    return Agent(
        model or MODEL_NAME,
        output_type=str,
        instructions=RENDERER_INSTRUCTIONS,
        model_settings=ModelSettings(temperature=0.7, max_tokens=1024, timeout=LLM_TIMEOUT),
        defer_model_check=True,
    )
