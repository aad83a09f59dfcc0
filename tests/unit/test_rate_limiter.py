from __future__ import annotations

import asyncio
import math

import pytest

from shadowwatch.analyze.llm.rate_limiter import RateLimiter
from shadowwatch.constants import ProviderName
from shadowwatch.models import ProviderConfig


def _config(name: ProviderName = ProviderName.OPENAI, rpm: int = 3, tpm=None) -> ProviderConfig:
    return ProviderConfig(name=name, api_key="k", model="m", requests_per_minute=rpm, tokens_per_minute=tpm)


def _limiter(fake_clock, logger, *configs: ProviderConfig) -> RateLimiter:
    return RateLimiter(
        configs or (_config(),),
        window_seconds=60.0,
        safety_buffer_seconds=0.1,
        clock=fake_clock,
        sleep=fake_clock.sleep,
        logger=logger,
    )


@pytest.mark.anyio
async def test_admits_up_to_request_cap_without_waiting(fake_clock, logger) -> None:
    limiter = _limiter(fake_clock, logger)

    for _ in range(3):
        await limiter.acquire(ProviderName.OPENAI)

    assert fake_clock.sleeps == []
    assert limiter.request_count("openai") == 3
    assert limiter.can_make_request("openai") is False


@pytest.mark.anyio
async def test_next_request_waits_for_oldest_entry_to_expire(fake_clock, logger) -> None:
    limiter = _limiter(fake_clock, logger)
    start = fake_clock.now
    for _ in range(3):
        await limiter.acquire("openai")
        fake_clock.advance(1.0)

    fake_clock.advance(2.0)  # elapsed since first admission: 5s
    await limiter.acquire("openai")

    assert len(fake_clock.sleeps) == 1
    assert fake_clock.sleeps[0] == pytest.approx(60.0 - 5.0 + 0.1)
    assert fake_clock.now >= start + 60.0
    assert limiter.request_count("openai") == 3


@pytest.mark.anyio
async def test_window_only_holds_recent_entries(fake_clock, logger) -> None:
    limiter = _limiter(fake_clock, logger, _config(rpm=2))

    for _ in range(7):
        await limiter.acquire("openai")
        now = fake_clock.now
        window = list(limiter._windows["openai"])
        assert all(ts > now - 60.0 for ts, _ in window)
        assert len(window) <= 2


@pytest.mark.anyio
async def test_token_cap_blocks_until_budget_frees(fake_clock, logger) -> None:
    limiter = _limiter(fake_clock, logger, _config(rpm=10, tpm=100))

    await limiter.acquire("openai", 60)
    await limiter.acquire("openai", 40)
    assert fake_clock.sleeps == []

    await limiter.acquire("openai", 1)
    assert fake_clock.sleeps == [pytest.approx(60.1)]
    assert limiter.token_usage("openai") == 1


@pytest.mark.anyio
async def test_token_wait_recomputes_until_enough_entries_expire(fake_clock, logger) -> None:
    limiter = _limiter(fake_clock, logger, _config(rpm=10, tpm=100))

    await limiter.acquire("openai", 50)
    fake_clock.advance(10.0)
    await limiter.acquire("openai", 40)
    await limiter.acquire("openai", 70)

    # first wait frees only the 50-token entry; 40 + 70 still exceeds the cap
    assert fake_clock.sleeps == [pytest.approx(50.1), pytest.approx(10.0)]
    assert limiter.token_usage("openai") == 70
    assert limiter.request_count("openai") == 1


def test_wait_is_clamped_to_the_safety_buffer(fake_clock, logger) -> None:
    limiter = _limiter(fake_clock, logger)

    assert limiter._wait_seconds(900.0, 1000.0) == pytest.approx(0.1)
    assert limiter._wait_seconds(940.0, 1000.0) == pytest.approx(0.1)
    assert limiter._wait_seconds(970.0, 1000.0) == pytest.approx(30.1)


@pytest.mark.anyio
async def test_infinite_token_cap_only_counts_requests(fake_clock, logger) -> None:
    limiter = _limiter(fake_clock, logger, _config(rpm=2, tpm=math.inf))

    await limiter.acquire("openai", 10**9)
    await limiter.acquire("openai", 10**9)

    assert fake_clock.sleeps == []


@pytest.mark.anyio
async def test_oversized_estimate_on_empty_window_is_admitted(fake_clock, logger) -> None:
    limiter = _limiter(fake_clock, logger, _config(rpm=5, tpm=100))

    await limiter.acquire("openai", 500)

    assert fake_clock.sleeps == []
    assert limiter.request_count("openai") == 1


@pytest.mark.anyio
async def test_unconfigured_provider_is_never_blocked(fake_clock, logger) -> None:
    limiter = _limiter(fake_clock, logger, _config(rpm=1))
    await limiter.acquire("openai")

    for _ in range(50):
        await limiter.acquire("claude", 10_000)
        await limiter.acquire("not-a-provider")

    assert fake_clock.sleeps == []
    assert limiter.request_count("claude") == 0


@pytest.mark.anyio
async def test_providers_have_independent_windows(fake_clock, logger) -> None:
    limiter = _limiter(
        fake_clock,
        logger,
        _config(ProviderName.OPENAI, rpm=1),
        _config(ProviderName.CLAUDE, rpm=1),
    )

    await limiter.acquire("openai")
    await limiter.acquire("claude")

    assert fake_clock.sleeps == []


@pytest.mark.anyio
async def test_concurrent_acquirers_never_overcommit(fake_clock, logger) -> None:
    async def yielding_sleep(seconds: float) -> None:
        await fake_clock.sleep(seconds)
        await asyncio.sleep(0)

    limiter = RateLimiter(
        [_config(rpm=2)],
        window_seconds=60.0,
        safety_buffer_seconds=0.1,
        clock=fake_clock,
        sleep=yielding_sleep,
        logger=logger,
    )
    admitted: list[float] = []

    async def worker() -> None:
        await limiter.acquire("openai")
        admitted.append(fake_clock.now)

    await asyncio.gather(*(worker() for _ in range(6)))

    assert len(admitted) == 6
    for t in admitted:
        in_window = [other for other in admitted if t - 60.0 < other <= t]
        assert len(in_window) <= 2


@pytest.mark.anyio
async def test_clear_history_resets_counts(fake_clock, logger) -> None:
    limiter = _limiter(fake_clock, logger)
    await limiter.acquire("openai")

    limiter.clear_history("openai")
    assert limiter.request_count("openai") == 0

    await limiter.acquire("openai")
    limiter.clear_history()
    assert limiter.request_count("openai") == 0


def test_configure_replaces_limits(fake_clock, logger) -> None:
    limiter = _limiter(fake_clock, logger, _config(rpm=1))
    limiter.configure(_config(rpm=5))

    assert limiter.can_make_request("openai") is True
    assert limiter.can_make_request("claude") is True
