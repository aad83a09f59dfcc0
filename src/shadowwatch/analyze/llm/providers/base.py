from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import httpx

from ....constants import Defaults, ProviderName
from ....errors import AuthenticationError, ConfigurationError, TransientError
from ....models import MessageRole, ProviderConfig, SectionField


@dataclass(frozen=True)
class Message:
    role: MessageRole
    content: str


@dataclass(frozen=True)
class RequestEnvelope:
    """Vendor-neutral request: chat messages plus generation settings."""

    messages: Tuple[Message, ...]
    model: Optional[str] = None
    max_tokens: int = Defaults.MAX_TOKENS
    temperature: Optional[float] = None
    system: Optional[str] = None
    schema: Optional[Dict[str, Any]] = None
    json_mode: bool = False
    estimated_tokens: Optional[int] = None
    sections: Optional[Tuple[SectionField, ...]] = None

    @classmethod
    def from_prompt(cls, prompt: str, **kwargs: Any) -> "RequestEnvelope":
        return cls(messages=(Message(role="user", content=prompt),), **kwargs)

    @classmethod
    def build(
        cls,
        prompt_or_messages: Union[str, Sequence[Union[Message, Dict[str, str]]]],
        **kwargs: Any,
    ) -> "RequestEnvelope":
        if isinstance(prompt_or_messages, str):
            return cls.from_prompt(prompt_or_messages, **kwargs)
        messages = tuple(
            m if isinstance(m, Message) else Message(role=m["role"], content=m["content"])  # type: ignore[arg-type]
            for m in prompt_or_messages
        )
        return cls(messages=messages, **kwargs)

    def prompt_chars(self) -> int:
        return len(self.system or "") + sum(len(m.content) for m in self.messages)


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class ResponseEnvelope:
    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    response_id: Optional[str] = None
    model: Optional[str] = None
    finish_reason: Optional[str] = None
    provider: Optional[str] = None


_AUTH_STATUSES = {401, 403}


def translate_vendor_error(exc: Exception, vendor: str) -> Exception:
    """Map a vendor SDK/transport failure onto the shadowwatch taxonomy.

    Unrecognised errors are returned unchanged.
    """
    if isinstance(exc, (ConfigurationError, AuthenticationError, TransientError)):
        return exc
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(exc, "status", None)
    status = status if isinstance(status, int) else None

    if status in _AUTH_STATUSES:
        return AuthenticationError(f"{vendor} rejected the API key: {exc}", status=status)
    if status is not None and (status == 429 or 500 <= status < 600):
        return TransientError(f"{vendor} request failed ({status}): {exc}", status=status)
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return TransientError(f"{vendor} request timeout: {exc}")
    if isinstance(exc, httpx.TransportError):
        return TransientError(f"{vendor} network connection failed: {exc}")
    return exc


class LLMProvider(ABC):
    """One LLM vendor behind a uniform request/response contract."""

    name: ProviderName
    vendor: str

    def __init__(self, config: ProviderConfig, *, client: Any = None) -> None:
        self.config = config
        self.api_key: Optional[str] = config.api_key.strip() or None
        # Without a credential the client stays unset, whatever was passed in.
        self._client: Any = client if self.api_key else None

    def is_configured(self) -> bool:
        return self.api_key is not None

    @property
    def client(self) -> Any:
        """Lazy initialize the vendor SDK client."""
        if self.api_key is None:
            raise ConfigurationError(f"{self.vendor} API key not configured")
        if self._client is None:
            self._client = self._create_client(self.api_key)
        return self._client

    def transport_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(float(self.config.timeout_seconds), connect=10.0)

    async def send_request(self, request: RequestEnvelope) -> ResponseEnvelope:
        """Make a single LLM call. Raises ConfigurationError before any I/O when unconfigured."""
        client = self.client
        try:
            return await self._send(client, request)
        except Exception as exc:
            translated = translate_vendor_error(exc, self.vendor)
            if translated is exc:
                raise
            raise translated from exc

    @abstractmethod
    def _create_client(self, api_key: str) -> Any:
        """Build the vendor SDK client."""

    @abstractmethod
    async def _send(self, client: Any, request: RequestEnvelope) -> ResponseEnvelope:
        """Translate the envelope to the vendor shape and back."""
