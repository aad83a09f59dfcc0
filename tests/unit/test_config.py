from __future__ import annotations

import pytest
from pydantic import ValidationError

from shadowwatch.analyze.llm.retry_handler import RetryPolicy
from shadowwatch.config import ShadowWatchConfig
from shadowwatch.constants import ProviderName


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("LLM_PROVIDER", "OPENAI_API_KEY", "CLAUDE_API_KEY", "LOG_LEVEL", "MAX_RETRIES"):
        monkeypatch.delenv(f"SHADOWWATCH_{name}", raising=False)


def test_config_loads_defaults_and_masks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHADOWWATCH_OPENAI_API_KEY", "sk_test_dummy")
    cfg = ShadowWatchConfig()

    assert cfg.provider is ProviderName.OPENAI
    assert cfg.openai_requests_per_minute == 60
    assert cfg.claude_requests_per_minute == 50
    assert cfg.max_retries == 3
    assert cfg.request_timeout_seconds == 300
    assert cfg.max_tokens == 4096
    assert cfg.api_key_for(ProviderName.OPENAI) == "sk_test_dummy"
    assert "sk_test_dummy" not in repr(cfg)


def test_provider_and_log_level_are_normalized(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHADOWWATCH_LLM_PROVIDER", " Claude ")
    monkeypatch.setenv("SHADOWWATCH_LOG_LEVEL", "DEBUG")
    cfg = ShadowWatchConfig()

    assert cfg.provider is ProviderName.CLAUDE
    assert cfg.log_level == "debug"


def test_invalid_provider_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHADOWWATCH_LLM_PROVIDER", "gemini")

    with pytest.raises(ValidationError):
        ShadowWatchConfig()


def test_invalid_quota_raises() -> None:
    with pytest.raises(ValidationError):
        ShadowWatchConfig(openai_requests_per_minute=0)


def test_config_is_frozen() -> None:
    cfg = ShadowWatchConfig()

    # Pydantic 2.x raises ValidationError for frozen models
    with pytest.raises((TypeError, ValidationError)):
        cfg.max_retries = 9


def test_provider_configs(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHADOWWATCH_CLAUDE_API_KEY", "  sk-ant-key  ")
    cfg = ShadowWatchConfig(claude_tokens_per_minute=40000, request_timeout_seconds=30)

    configs = cfg.provider_configs()

    claude = configs[ProviderName.CLAUDE]
    assert claude.api_key == "sk-ant-key"
    assert claude.model == "claude-sonnet-4-5"
    assert claude.requests_per_minute == 50
    assert claude.tokens_per_minute == 40000
    assert claude.timeout_seconds == 30
    assert "sk-ant-key" not in repr(claude)

    openai = configs[ProviderName.OPENAI]
    assert openai.api_key == ""
    assert openai.tokens_per_minute is None
    assert openai.model == "gpt-5.1"


def test_retry_policy_from_config() -> None:
    cfg = ShadowWatchConfig(max_retries=5, retry_base_delay_seconds=0.5, retry_max_delay_seconds=8)

    policy = cfg.retry_policy()

    assert isinstance(policy, RetryPolicy)
    assert policy.max_retries == 5
    assert policy.base_delay == 0.5
    assert policy.max_delay == 8
