"""
Tests for Delay and DelayMap - per-domain request spacing.
"""

import asyncio
import time

from pagepal.services.retrieval import Delay, DelayMap


def test_first_access_does_not_wait():
    async def scenario():
        return await Delay(5.0).delay_if()

    assert asyncio.run(scenario()) == 0.0


def test_second_access_waits_for_interval():
    async def scenario():
        delay = Delay(0.05)
        await delay.delay_if()
        started = time.monotonic()
        await delay.delay_if()
        return time.monotonic() - started

    assert asyncio.run(scenario()) >= 0.045


def test_min_interval_overrides_default():
    async def scenario():
        delay = Delay(5.0)
        await delay.delay_if()
        return await delay.delay_if(min_interval=0.0)

    assert asyncio.run(scenario()) == 0.0


def test_concurrent_accesses_are_serialized():
    async def scenario():
        delay = Delay(0.05)
        started = time.monotonic()
        await asyncio.gather(*(delay.delay_if() for _ in range(3)))
        return time.monotonic() - started

    assert asyncio.run(scenario()) >= 0.09


def test_domains_do_not_wait_for_each_other():
    async def scenario():
        delays = DelayMap(0.5)
        await delays.access("example.com")
        started = time.monotonic()
        slept = await delays.access("other.org")
        return slept, time.monotonic() - started, delays

    slept, elapsed, delays = asyncio.run(scenario())
    assert slept == 0.0
    assert elapsed < 0.25
    assert "example.com" in delays and "other.org" in delays
    assert "unused.net" not in delays


def test_delay_is_shared_across_event_loops():
    delay = Delay(0.05)
    asyncio.run(delay.delay_if())

    started = time.monotonic()
    slept = asyncio.run(delay.delay_if())

    assert slept > 0
    assert time.monotonic() - started >= 0.045
