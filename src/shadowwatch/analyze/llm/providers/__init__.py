from __future__ import annotations

from typing import Dict, List, Mapping, Union

from ....constants import ProviderName
from ....errors import ConfigurationError
from ....models import ProviderConfig
from .anthropic_provider import AnthropicProvider
from .base import (
    LLMProvider,
    Message,
    RequestEnvelope,
    ResponseEnvelope,
    TokenUsage,
    translate_vendor_error,
)
from .openai_provider import OpenAIProvider


PROVIDERS: dict[ProviderName, type[LLMProvider]] = {
    ProviderName.OPENAI: OpenAIProvider,
    ProviderName.CLAUDE: AnthropicProvider,
}


def parse_provider_name(name: Union[ProviderName, str]) -> ProviderName:
    if isinstance(name, ProviderName):
        return name
    try:
        return ProviderName((name or "").strip().lower())
    except ValueError:
        raise ConfigurationError(f"Unknown LLM provider: {name}") from None


class ProviderFactory:
    """Creates and caches one adapter per configured provider."""

    def __init__(self, configs: Mapping[ProviderName, ProviderConfig]) -> None:
        self._configs: Dict[ProviderName, ProviderConfig] = dict(configs)
        self._providers: Dict[ProviderName, LLMProvider] = {}

    def get_provider(self, name: Union[ProviderName, str]) -> LLMProvider:
        provider_name = parse_provider_name(name)
        if provider_name in self._providers:
            return self._providers[provider_name]

        config = self._configs.get(provider_name)
        if config is None:
            raise ConfigurationError(f"No configuration for LLM provider: {provider_name.value}")
        provider = PROVIDERS[provider_name](config)
        self._providers[provider_name] = provider
        return provider

    def select(self, name: Union[ProviderName, str]) -> LLMProvider:
        """Return the adapter for name, failing now if its credential is missing."""
        provider = self.get_provider(name)
        if not provider.is_configured():
            raise ConfigurationError(f"{provider.vendor} API key not configured")
        return provider

    def register(self, provider: LLMProvider) -> None:
        """Use a pre-built adapter (e.g. one wrapping an injected client)."""
        self._providers[provider.name] = provider
        self._configs.setdefault(provider.name, provider.config)

    def is_provider_configured(self, name: Union[ProviderName, str]) -> bool:
        return self.get_provider(name).is_configured()

    def configured_providers(self) -> List[ProviderName]:
        return [name for name in PROVIDERS if name in self._configs and self.is_provider_configured(name)]


__all__ = [
    "LLMProvider",
    "Message",
    "RequestEnvelope",
    "ResponseEnvelope",
    "TokenUsage",
    "OpenAIProvider",
    "AnthropicProvider",
    "PROVIDERS",
    "ProviderFactory",
    "parse_provider_name",
    "translate_vendor_error",
]
