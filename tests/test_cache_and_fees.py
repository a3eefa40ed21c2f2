"""Tests for the time-bounded cache and the EAS fee conversion."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal

import httpx
import pytest

from proof_stamps.cache import TimeBoundedCache
from proof_stamps.errors import ConfigurationError, PriceLookupError
from proof_stamps.fees import EthPriceFetcher, eth_price_cache, get_eas_fee_amount
from proof_stamps.settings import ProofStampsSettings


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class SequenceFetch:
    """Return queued values, optionally waiting on a gate before each call."""

    def __init__(self, *values: object) -> None:
        self.values = list(values)
        self.calls = 0
        self.gate: asyncio.Event | None = None

    async def __call__(self) -> object:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        value = self.values.pop(0)
        if isinstance(value, Exception):
            raise value
        return value


@pytest.mark.asyncio
async def test_concurrent_first_calls_share_one_fetch() -> None:
    fetch = SequenceFetch(2000.0)
    fetch.gate = asyncio.Event()
    cache = TimeBoundedCache(fetch, 300)

    waiters = [asyncio.create_task(cache.get()) for _ in range(5)]
    await asyncio.sleep(0)
    fetch.gate.set()
    results = await asyncio.gather(*waiters)

    assert results == [2000.0] * 5
    assert fetch.calls == 1


@pytest.mark.asyncio
async def test_fresh_value_is_served_from_cache() -> None:
    clock = FakeClock()
    fetch = SequenceFetch(1.0, 2.0)
    cache = TimeBoundedCache(fetch, 300, clock=clock)

    assert await cache.get() == 1.0
    clock.now += 300
    assert await cache.get() == 1.0
    assert fetch.calls == 1
    assert cache.last_refreshed == 1000.0


@pytest.mark.asyncio
async def test_stale_value_is_served_while_refreshing() -> None:
    clock = FakeClock()
    fetch = SequenceFetch(1.0, 2.0)
    cache = TimeBoundedCache(fetch, 300, clock=clock)
    assert await cache.get() == 1.0

    clock.now += 301
    fetch.gate = asyncio.Event()
    assert await cache.get() == 1.0
    assert cache.refreshing
    assert await cache.get() == 1.0
    await asyncio.sleep(0)
    assert fetch.calls == 2

    fetch.gate.set()
    while cache.refreshing:
        await asyncio.sleep(0)
    assert await cache.get() == 2.0


@pytest.mark.asyncio
async def test_failed_refresh_keeps_stale_value(caplog) -> None:
    clock = FakeClock()
    fetch = SequenceFetch(1.0, PriceLookupError("down"), 3.0)
    cache = TimeBoundedCache(fetch, 300, clock=clock, name="eth_price")
    await cache.get()

    clock.now += 301
    with caplog.at_level(logging.WARNING):
        assert await cache.get() == 1.0
        while cache.refreshing:
            await asyncio.sleep(0)
    assert "Cache refresh failed" in caplog.text

    assert await cache.get() == 1.0
    while cache.refreshing:
        await asyncio.sleep(0)
    assert await cache.get() == 3.0


@pytest.mark.asyncio
async def test_first_fetch_failure_propagates() -> None:
    cache = TimeBoundedCache(SequenceFetch(PriceLookupError("down"), 5.0), 300)

    with pytest.raises(PriceLookupError):
        await cache.get()
    assert await cache.get() == 5.0


def test_cache_rejects_non_positive_period() -> None:
    with pytest.raises(ValueError):
        TimeBoundedCache(SequenceFetch(), 0)


@pytest.mark.asyncio
async def test_eas_fee_amount_in_wei() -> None:
    cache = TimeBoundedCache(SequenceFetch(2000.0), 300)

    assert await get_eas_fee_amount(2, cache) == 10**15
    assert await get_eas_fee_amount(Decimal("1.5"), cache) == 750_000_000_000_000


@pytest.mark.asyncio
async def test_eas_fee_amount_rounds_to_eighteen_decimals() -> None:
    cache = TimeBoundedCache(SequenceFetch(3.0), 300)

    assert await get_eas_fee_amount(1, cache) == 333_333_333_333_333_333


@pytest.mark.asyncio
async def test_price_fetcher_parses_usd_price() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"usdPrice": 1834.5, "nativePrice": {}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        fetcher = EthPriceFetcher(
            "https://prices.test/eth", api_key="secret", client=client
        )
        assert await fetcher() == 1834.5

    assert seen[0].headers["X-API-Key"] == "secret"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="oops"),
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json={"usdPrice": "n/a"}),
        httpx.Response(200, json={"usdPrice": 0}),
        httpx.Response(200, json=[1, 2]),
    ],
)
async def test_price_fetcher_failures(response: httpx.Response) -> None:
    transport = httpx.MockTransport(lambda request: response)
    async with httpx.AsyncClient(transport=transport) as client:
        fetcher = EthPriceFetcher("https://prices.test/eth", client=client)
        with pytest.raises(PriceLookupError, match="Failed to get ETH price"):
            await fetcher()


def test_price_fetcher_requires_url() -> None:
    with pytest.raises(ConfigurationError):
        EthPriceFetcher(settings=ProofStampsSettings())


def test_eth_price_cache_uses_configured_period() -> None:
    settings = ProofStampsSettings(
        eth_price_url="https://prices.test/eth", eth_price_cache_seconds="60"
    )
    cache = eth_price_cache(settings=settings)
    assert cache.period_seconds == 60.0
