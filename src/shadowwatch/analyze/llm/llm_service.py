from __future__ import annotations

import math
from typing import Any, Dict, Optional, Sequence, Union

from ...config import ShadowWatchConfig
from ...constants import Defaults, ProviderName
from ...logging import ShadowLogger, default_logger
from ...models import SectionField
from .providers import LLMProvider, Message, ProviderFactory, RequestEnvelope, TokenUsage
from .rate_limiter import RateLimiter
from .response_parser import ParsedResult, ResponseParser
from .retry_handler import RetryPolicy, is_retryable, retry_with_backoff

PromptOrMessages = Union[str, Sequence[Union[Message, Dict[str, str]]]]


def estimate_tokens(request: RequestEnvelope) -> int:
    """Rough prompt size (about four characters per token) plus the completion budget."""
    if request.estimated_tokens is not None:
        return request.estimated_tokens
    return math.ceil(request.prompt_chars() / Defaults.CHARS_PER_TOKEN) + request.max_tokens


class LLMService:
    """
    Single entry point for model calls.

    Flow per call:
    1. Select the configured provider (fails fast on a missing key)
    2. Acquire rate-limit capacity for the estimated token cost
    3. Send the request, retrying transient failures with backoff
    4. Parse and validate the reply
    """

    def __init__(
        self,
        config: ShadowWatchConfig,
        *,
        factory: Optional[ProviderFactory] = None,
        rate_limiter: Optional[RateLimiter] = None,
        parser: Optional[ResponseParser] = None,
        retry_policy: Optional[RetryPolicy] = None,
        logger: Optional[ShadowLogger] = None,
    ) -> None:
        self.config = config
        self.logger = logger or default_logger()
        provider_configs = config.provider_configs()
        self.factory = factory or ProviderFactory(provider_configs)
        self.rate_limiter = rate_limiter or RateLimiter(
            provider_configs.values(),
            window_seconds=config.rate_window_seconds,
            safety_buffer_seconds=config.rate_safety_buffer_seconds,
            logger=self.logger,
        )
        self.parser = parser or ResponseParser(logger=self.logger)
        self.retry_policy = retry_policy or config.retry_policy()
        self.last_usage: Optional[TokenUsage] = None

    @property
    def provider_name(self) -> ProviderName:
        return self.config.provider

    def is_configured(self) -> bool:
        return self.factory.is_provider_configured(self.provider_name)

    async def request(
        self,
        prompt_or_messages: PromptOrMessages,
        schema: Optional[Dict[str, Any]] = None,
        *,
        system: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        estimated_tokens: Optional[int] = None,
        json_mode: bool = False,
        sections: Optional[Sequence[SectionField]] = None,
    ) -> ParsedResult:
        envelope = RequestEnvelope.build(
            prompt_or_messages,
            model=model,
            max_tokens=max_tokens or self.config.max_tokens,
            temperature=temperature,
            system=system,
            schema=schema,
            json_mode=json_mode,
            estimated_tokens=estimated_tokens,
            sections=tuple(sections) if sections else None,
        )
        return await self.send(envelope)

    async def generate_structured(
        self,
        prompt: str,
        schema: Dict[str, Any],
        *,
        system: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        estimated_tokens: Optional[int] = None,
    ) -> Any:
        """Request a reply that must match schema; returns the validated data."""
        result = await self.request(
            prompt,
            schema,
            system=system,
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            estimated_tokens=estimated_tokens,
            json_mode=True,
        )
        return result.data

    async def send(self, envelope: RequestEnvelope) -> ParsedResult:
        provider = self.factory.select(self.provider_name)
        name = provider.name.value
        tokens = estimate_tokens(envelope)

        with self.logger.stage(f"llm_request:{name}"):
            await self.rate_limiter.acquire(provider.name, tokens)
            try:
                response = await retry_with_backoff(
                    lambda: provider.send_request(envelope),
                    self.retry_policy,
                    logger=self.logger,
                )
            except Exception as exc:
                self._log_failure("llm_request_failed", provider, exc)
                raise

            self.last_usage = response.usage
            self.logger.info(
                "llm_response",
                provider=name,
                model=response.model,
                response_id=response.response_id,
                finish_reason=response.finish_reason,
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                estimated_tokens=tokens,
            )
            if response.finish_reason == "length":
                self.logger.warning("llm_response_truncated", provider=name, max_tokens=envelope.max_tokens)

            try:
                result = self.parser.parse(response.content, envelope.schema, envelope.sections)
            except Exception as exc:
                self._log_failure("llm_parse_failed", provider, exc, content_chars=len(response.content))
                raise

        self.logger.debug("llm_parsed", provider=name, tier=result.tier.value)
        return result

    def _log_failure(self, event: str, provider: LLMProvider, exc: Exception, **fields: Any) -> None:
        self.logger.error(
            event,
            provider=provider.name.value,
            error_type=exc.__class__.__name__,
            error=str(exc),
            retryable=is_retryable(exc, self.retry_policy.retryable_patterns),
            **fields,
        )
