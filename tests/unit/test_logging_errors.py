from __future__ import annotations

import json

import pytest

from shadowwatch.errors import (
    AuthenticationError,
    ConfigurationError,
    ShadowWatchError,
    TransientError,
    ValidationError,
    describe_error,
)
from shadowwatch.logging import ShadowLogger


def test_logger_emits_json(capsys) -> None:
    logger = ShadowLogger("run-1")
    logger.info("hello", detail="world")
    captured = capsys.readouterr()

    payload = json.loads(captured.err.strip().splitlines()[0])
    assert payload["session_id"] == "run-1"
    assert payload["level"] == "info"
    assert payload["message"] == "hello"
    assert payload["detail"] == "world"
    assert "timestamp" in payload


def test_logger_redacts_sensitive_keys(capsys) -> None:
    logger = ShadowLogger("run-3")
    logger.info("secret", api_key="sk-test", auth_token="t", prompt_tokens=12, tokens_out=3)
    captured = capsys.readouterr()
    payload = json.loads(captured.err.strip().splitlines()[0])

    assert payload["api_key"] == "***"
    assert payload["auth_token"] == "***"
    assert payload["prompt_tokens"] == 12
    assert payload["tokens_out"] == 3


def test_logger_filters_below_level(log_stream) -> None:
    logger = ShadowLogger("run-4", level="WARNING", stream=log_stream)
    logger.debug("quiet")
    logger.info("quiet")
    logger.warning("loud")

    lines = log_stream.getvalue().splitlines()
    assert [json.loads(line)["message"] for line in lines] == ["loud"]
    assert logger.is_enabled_for("error") is True
    assert logger.is_enabled_for("info") is False


def test_unknown_level_falls_back_to_info() -> None:
    assert ShadowLogger("run-5", level="verbose").level == "info"


def test_stage_records_duration_and_status(logger, log_stream) -> None:
    with logger.stage("planning"):
        pass

    with pytest.raises(RuntimeError):
        with logger.stage("sending"):
            raise RuntimeError("boom")

    events = [json.loads(line) for line in log_stream.getvalue().splitlines()]
    ends = [e for e in events if e["message"] == "stage_end"]
    assert [(e["stage"], e["status"]) for e in ends] == [("planning", "ok"), ("sending", "error")]
    assert all(isinstance(e["duration_ms"], int) for e in ends)
    assert any(e["message"] == "stage_error" and e["error"] == "boom" for e in events)


def test_error_taxonomy() -> None:
    assert TransientError("x").retryable is True
    for error in (ConfigurationError("x"), AuthenticationError("x"), ValidationError("x")):
        assert isinstance(error, ShadowWatchError)
        assert error.retryable is False
    assert AuthenticationError("x").status == 401
    assert TransientError("x", status=503).status == 503


def test_validation_error_carries_path_and_raw_text() -> None:
    error = ValidationError("Missing required field 'phases'", path="phases").with_raw_text("{}")
    assert error.path == "phases"
    assert error.raw_text == "{}"
    assert error.code == "validation_error"


def test_describe_error_messages() -> None:
    assert "Please retry later" in describe_error(TransientError("503 from OpenAI", status=503))
    assert describe_error(ConfigurationError("OpenAI API key not configured")) == "OpenAI API key not configured"
    assert describe_error(ValueError("bad"), retryable=True).startswith("The LLM service is temporarily unavailable")
    assert describe_error(ValueError("bad")) == "bad"
    assert describe_error(KeyError()) == "KeyError"
