from __future__ import annotations

from typing import Dict, Literal, Optional

from pydantic import Field, SecretStr, confloat, conint, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import Defaults, ProviderName
from .models import ProviderConfig

LLMProviderType = Literal["openai", "claude"]
LogLevelType = Literal["debug", "info", "warning", "error"]


class ShadowWatchConfig(BaseSettings):
    """Configuration loaded from SHADOWWATCH_* environment variables.

    Construct once and pass it to the services that need it.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHADOWWATCH_",
        frozen=True,
        extra="ignore",
        protected_namespaces=(),
    )

    llm_provider: LLMProviderType = Field(
        default="openai",
        description="LLM provider: openai or claude",
    )
    openai_api_key: SecretStr = Field(default="", description="OpenAI API key (required if llm_provider=openai)")
    claude_api_key: SecretStr = Field(default="", description="Anthropic API key (required if llm_provider=claude)")

    openai_model: str = Field(default=Defaults.OPENAI_MODEL)
    claude_model: str = Field(default=Defaults.CLAUDE_MODEL)

    # Quotas are per sliding window; tokens_per_minute unset means unlimited.
    openai_requests_per_minute: conint(ge=1) = Field(default=Defaults.OPENAI_REQUESTS_PER_MINUTE)
    openai_tokens_per_minute: Optional[conint(ge=1)] = Field(default=None)
    claude_requests_per_minute: conint(ge=1) = Field(default=Defaults.CLAUDE_REQUESTS_PER_MINUTE)
    claude_tokens_per_minute: Optional[conint(ge=1)] = Field(default=None)
    rate_window_seconds: confloat(gt=0) = Field(default=Defaults.RATE_WINDOW_SECONDS)
    rate_safety_buffer_seconds: confloat(ge=0) = Field(default=Defaults.RATE_SAFETY_BUFFER_SECONDS)

    max_retries: conint(ge=0) = Field(default=Defaults.MAX_RETRIES)
    retry_base_delay_seconds: confloat(ge=0) = Field(default=Defaults.RETRY_BASE_DELAY_SECONDS)
    retry_max_delay_seconds: Optional[confloat(gt=0)] = Field(default=None)

    request_timeout_seconds: conint(ge=1) = Field(default=Defaults.REQUEST_TIMEOUT_SECONDS)
    max_tokens: conint(ge=1) = Field(default=Defaults.MAX_TOKENS)
    planner_tiny_threshold: conint(ge=0) = Field(default=Defaults.PLANNER_TINY_THRESHOLD)
    log_level: LogLevelType = Field(default="info")

    @field_validator("llm_provider", "log_level", mode="before")
    @classmethod
    def _normalize_lowercase(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def provider(self) -> ProviderName:
        return ProviderName(self.llm_provider)

    def api_key_for(self, name: ProviderName) -> str:
        if name == ProviderName.CLAUDE:
            return self.claude_api_key.get_secret_value().strip()
        return self.openai_api_key.get_secret_value().strip()

    def provider_configs(self) -> Dict[ProviderName, ProviderConfig]:
        """One immutable ProviderConfig per supported backend."""
        return {
            ProviderName.OPENAI: ProviderConfig(
                name=ProviderName.OPENAI,
                api_key=self.api_key_for(ProviderName.OPENAI),
                model=self.openai_model,
                requests_per_minute=self.openai_requests_per_minute,
                tokens_per_minute=self.openai_tokens_per_minute,
                timeout_seconds=self.request_timeout_seconds,
            ),
            ProviderName.CLAUDE: ProviderConfig(
                name=ProviderName.CLAUDE,
                api_key=self.api_key_for(ProviderName.CLAUDE),
                model=self.claude_model,
                requests_per_minute=self.claude_requests_per_minute,
                tokens_per_minute=self.claude_tokens_per_minute,
                timeout_seconds=self.request_timeout_seconds,
            ),
        }

    def retry_policy(self):
        from .analyze.llm.retry_handler import RetryPolicy

        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay_seconds,
            max_delay=self.retry_max_delay_seconds,
        )
