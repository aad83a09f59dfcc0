from __future__ import annotations

from enum import Enum


class ProviderName(str, Enum):
    """Supported LLM backends."""

    OPENAI = "openai"
    CLAUDE = "claude"


class Defaults:
    """Shared defaults for the request pipeline."""

    RATE_WINDOW_SECONDS = 60.0
    RATE_SAFETY_BUFFER_SECONDS = 0.1
    OPENAI_REQUESTS_PER_MINUTE = 60
    CLAUDE_REQUESTS_PER_MINUTE = 50

    MAX_RETRIES = 3
    RETRY_BASE_DELAY_SECONDS = 1.0

    REQUEST_TIMEOUT_SECONDS = 300
    MAX_TOKENS = 4096
    CHARS_PER_TOKEN = 4

    OPENAI_MODEL = "gpt-5.1"
    CLAUDE_MODEL = "claude-sonnet-4-5"

    PLANNER_TINY_THRESHOLD = 3
    PLANNER_MAX_FOLDERS = 20


RETRYABLE_ERROR_PATTERNS = (
    "rate_limit",
    "rate limit",
    "too_many_requests",
    "timeout",
    "timed out",
    "network",
    "connection",
    "econnreset",
    "etimedout",
    "enotfound",
    "econnrefused",
    "temporary",
    "transient",
    "overloaded",
    "unavailable",
    "429",
    "500",
    "502",
    "503",
    "504",
    "529",
)
