"""Configuration and environment defaults for the Canvas agent.

Loads environment variables (.env via python-dotenv) and exposes constants used
across the client, the classifier/renderer agents and the orchestrator.
"""

import os
from dotenv import load_dotenv

load_dotenv()

CANVAS_URL = os.getenv("CANVAS_URL", "https://canvas.instructure.com")
DEFAULT_TZ = os.getenv("AGENT_TZ", "Europe/Amsterdam")
MODEL_NAME = os.getenv("PYDANTIC_AI_MODEL", "openai:gpt-4o-mini")

# Canvas calls should fail fast; LLM calls get a longer but finite budget.
CANVAS_TIMEOUT = float(os.getenv("CANVAS_TIMEOUT", "10"))
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60"))

CANVAS_PAGE_SIZE = int(os.getenv("CANVAS_PAGE_SIZE", "50"))
CANVAS_MAX_PAGES = int(os.getenv("CANVAS_MAX_PAGES", "50"))
CANVAS_FANOUT_CONCURRENCY = int(os.getenv("CANVAS_FANOUT_CONCURRENCY", "4"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
