from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, TextIO

_LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40}


class ShadowLogger:
    """Structured JSON logger writing one line per event to stderr."""

    def __init__(self, session_id: str, level: str = "info", stream: TextIO | None = None):
        self.session_id = session_id
        self.level = level.lower() if level.lower() in _LEVELS else "info"
        self._stream = stream
        self._stage_starts: dict[str, datetime] = {}

    def debug(self, message: str, **kwargs: Any) -> None:
        self._emit("debug", message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._emit("info", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._emit("warning", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._emit("error", message, **kwargs)

    def is_enabled_for(self, level: str) -> bool:
        return _LEVELS.get(level, 0) >= _LEVELS[self.level]

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Context manager that tracks stage timing."""
        start = datetime.now(timezone.utc)
        self._stage_starts[name] = start
        self.debug("stage_start", stage=name)
        status = "ok"
        try:
            yield
        except BaseException as exc:
            status = "error"
            self.debug("stage_error", stage=name, error=str(exc) or exc.__class__.__name__)
            raise
        finally:
            end = datetime.now(timezone.utc)
            duration_ms = int((end - start).total_seconds() * 1000)
            self.info("stage_end", stage=name, duration_ms=duration_ms, status=status)

    def _emit(self, level: str, message: str, **kwargs: Any) -> None:
        if not self.is_enabled_for(level):
            return
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "session_id": self.session_id,
            "message": message,
        }
        payload.update(self._sanitize(kwargs))

        stream = self._stream or sys.stderr
        stream.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
        stream.flush()

    @staticmethod
    def _sanitize(fields: Dict[str, Any]) -> Dict[str, Any]:
        redacted: Dict[str, Any] = {}
        for key, value in fields.items():
            if ShadowLogger._is_sensitive_key(key):
                redacted[key] = "***"
            else:
                redacted[key] = value
        return redacted

    @staticmethod
    def _is_sensitive_key(key: str) -> bool:
        lowered = key.lower()
        if lowered.endswith(("_tokens", "tokens_in", "tokens_out")):
            # token counts, not credentials
            return False
        return any(token in lowered for token in ("token", "secret", "password", "api_key", "apikey"))


def default_logger() -> ShadowLogger:
    return ShadowLogger("shadowwatch")
