from __future__ import annotations

import asyncio
import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, Dict, Iterable, Optional, Tuple, Union

from ...constants import Defaults, ProviderName
from ...logging import ShadowLogger, default_logger
from ...models import ProviderConfig


@dataclass(frozen=True)
class RateLimit:
    max_requests: int
    max_tokens: Optional[float] = None

    @property
    def token_cap_enabled(self) -> bool:
        return self.max_tokens is not None and not math.isinf(self.max_tokens)


ProviderKey = Union[ProviderName, str]


def _key(provider: ProviderKey) -> str:
    return provider.value if isinstance(provider, ProviderName) else str(provider)


class RateLimiter:
    """Sliding-window request/token budget per provider.

    Usage is recorded when a request is admitted, before the network call
    completes. The prune/check/append step never awaits, so concurrent
    acquirers on the same event loop cannot both be admitted on stale state.
    """

    def __init__(
        self,
        configs: Iterable[ProviderConfig] = (),
        *,
        window_seconds: float = Defaults.RATE_WINDOW_SECONDS,
        safety_buffer_seconds: float = Defaults.RATE_SAFETY_BUFFER_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: Optional[ShadowLogger] = None,
    ) -> None:
        self.window_seconds = window_seconds
        self.safety_buffer_seconds = safety_buffer_seconds
        self._clock = clock
        self._sleep = sleep
        self.logger = logger or default_logger()
        self._limits: Dict[str, RateLimit] = {}
        self._windows: Dict[str, Deque[Tuple[float, float]]] = {}
        for config in configs:
            self.configure(config)

    def configure(self, config: ProviderConfig) -> None:
        """Add or replace the limits for a provider."""
        self.set_limit(config.name, config.requests_per_minute, config.tokens_per_minute)

    def set_limit(
        self,
        provider: ProviderKey,
        max_requests: int,
        max_tokens: Optional[float] = None,
    ) -> None:
        self._limits[_key(provider)] = RateLimit(max_requests=max_requests, max_tokens=max_tokens)

    async def acquire(self, provider: ProviderKey, estimated_tokens: float = 0) -> None:
        """Wait until a request fits the provider's window, then record it."""
        name = _key(provider)
        limit = self._limits.get(name)
        if limit is None:
            self.logger.debug("rate_limit_unmetered", provider=name)
            return

        while True:
            wait_seconds = self._try_admit(name, limit, estimated_tokens)
            if wait_seconds is None:
                return
            self.logger.info(
                "rate_limit_wait",
                provider=name,
                wait_ms=int(wait_seconds * 1000),
                in_window=len(self._windows.get(name, ())),
            )
            await self._sleep(wait_seconds)

    def can_make_request(self, provider: ProviderKey, estimated_tokens: float = 0) -> bool:
        name = _key(provider)
        limit = self._limits.get(name)
        if limit is None:
            return True
        window = self._prune(name, self._clock())
        return self._fits(window, limit, estimated_tokens)

    def request_count(self, provider: ProviderKey) -> int:
        name = _key(provider)
        if name not in self._limits:
            return 0
        return len(self._prune(name, self._clock()))

    def token_usage(self, provider: ProviderKey) -> float:
        name = _key(provider)
        if name not in self._limits:
            return 0
        return sum(cost for _, cost in self._prune(name, self._clock()))

    def clear_history(self, provider: Optional[ProviderKey] = None) -> None:
        if provider is None:
            self._windows.clear()
        else:
            self._windows.pop(_key(provider), None)

    def _try_admit(self, name: str, limit: RateLimit, estimated_tokens: float) -> Optional[float]:
        """Admit and record the request, or return how long to wait."""
        now = self._clock()
        window = self._prune(name, now)

        if self._fits(window, limit, estimated_tokens):
            window.append((now, estimated_tokens))
            return None

        if not window:
            # A single estimate larger than the whole token budget would never fit.
            self.logger.warning(
                "rate_limit_estimate_exceeds_cap",
                provider=name,
                estimated_tokens=estimated_tokens,
                max_tokens=limit.max_tokens,
            )
            window.append((now, estimated_tokens))
            return None

        return self._wait_seconds(window[0][0], now)

    def _wait_seconds(self, oldest: float, now: float) -> float:
        """Time until the oldest entry leaves the window, never negative, plus the safety buffer."""
        return max(0.0, oldest + self.window_seconds - now) + self.safety_buffer_seconds

    def _prune(self, name: str, now: float) -> Deque[Tuple[float, float]]:
        window = self._windows.setdefault(name, deque())
        cutoff = now - self.window_seconds
        while window and window[0][0] <= cutoff:
            window.popleft()
        return window

    @staticmethod
    def _fits(window: Deque[Tuple[float, float]], limit: RateLimit, estimated_tokens: float) -> bool:
        if len(window) >= limit.max_requests:
            return False
        if limit.token_cap_enabled:
            used = sum(cost for _, cost in window)
            if used + estimated_tokens > limit.max_tokens:
                return False
        return True
