"""Shared fixtures for pool_monitor tests."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal

import pytest

from pool_monitor.core.enrichment import EventEnricher
from pool_monitor.core.stream_session import StreamSessionManager

from tests.factories import CURVE, MINT, OTHER_CURVE, PROGRAM_ID, WALLET
from tests.mocks import MockLookups, MockStreamClient

SYSTEM_PROGRAM = "11111111111111111111111111111111"


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate()`` holds or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


@pytest.fixture
def lookups():
    """Chain lookups with one pump.fun curve holding 10 SOL and 500 of 1000 tokens."""
    m = MockLookups()
    m.add_account(WALLET, SYSTEM_PROGRAM, 2_000_000_000)
    m.add_account(CURVE, PROGRAM_ID, 10_000_000_000)
    m.add_account(OTHER_CURVE, PROGRAM_ID, 3_000_000_000)
    m.supplies[MINT] = Decimal("1000")
    m.balances[(CURVE, MINT)] = Decimal("500")
    m.balances[(OTHER_CURVE, MINT)] = Decimal("250")
    return m


@pytest.fixture
def enricher(lookups):
    return EventEnricher(lookups, program_id=PROGRAM_ID, sol_price_usd=Decimal("134.7"), event_timeout=1.0)


@pytest.fixture
def stream_client():
    return MockStreamClient()


@pytest.fixture
def handled_events():
    return []


@pytest.fixture
async def manager(stream_client, handled_events):
    """StreamSessionManager recording every dispatched event."""

    async def on_event(event):
        handled_events.append(event)

    m = StreamSessionManager(stream_client, on_event, close_timeout=1.0)
    yield m
    await m.shutdown()


@pytest.fixture
def root_logger():
    """Root logger; handlers added during the test are removed afterwards."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
