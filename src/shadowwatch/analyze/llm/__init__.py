"""LLM request orchestration."""

from .llm_service import LLMService, estimate_tokens
from .providers import (
    AnthropicProvider,
    LLMProvider,
    Message,
    OpenAIProvider,
    ProviderFactory,
    RequestEnvelope,
    ResponseEnvelope,
    TokenUsage,
)
from .rate_limiter import RateLimiter
from .response_parser import (
    ExtractionTier,
    ParsedResult,
    ResponseParser,
    extract_json_span,
    extract_list_section,
    extract_section,
    parse_markdown_sections,
    split_list_items,
    validate,
)
from .retry_handler import (
    DEFAULT_RETRY_POLICY,
    RetryPolicy,
    RetryResult,
    is_retryable,
    retry_with_backoff,
    retry_with_count,
)

__all__ = [
    "AnthropicProvider",
    "DEFAULT_RETRY_POLICY",
    "ExtractionTier",
    "LLMProvider",
    "LLMService",
    "Message",
    "OpenAIProvider",
    "ParsedResult",
    "ProviderFactory",
    "RateLimiter",
    "RequestEnvelope",
    "ResponseEnvelope",
    "ResponseParser",
    "RetryPolicy",
    "RetryResult",
    "TokenUsage",
    "estimate_tokens",
    "extract_json_span",
    "extract_list_section",
    "extract_section",
    "is_retryable",
    "parse_markdown_sections",
    "retry_with_backoff",
    "retry_with_count",
    "split_list_items",
    "validate",
]
