"""Refresh loop: fetch, reconfigure, await completion, repeat."""

from __future__ import annotations

import asyncio
import logging

from pool_monitor.config.constants import LoopState
from pool_monitor.core.address_source import AddressSource
from pool_monitor.core.errors import TransportError
from pool_monitor.core.refresh_loop import RefreshLoop
from pool_monitor.core.stream_session import StreamSessionManager

from tests.conftest import wait_until
from tests.factories import ADDRESSES, CURVE, MINT
from tests.mocks import MockStreamClient, StaticAddresses


def _loop(fetch, manager, **kwargs) -> RefreshLoop:
    kwargs.setdefault("interval", 0.01)
    return RefreshLoop(AddressSource(fetch), manager, **kwargs)


def _included(conn) -> list:
    return conn.writes[0]["transactions"]["pumpfun"]["accountInclude"]


async def test_empty_addresses_skip_reconfigure(manager, stream_client, caplog):
    caplog.set_level(logging.INFO, logger="pool_monitor")
    loop = _loop(StaticAddresses([]), manager)

    await loop.tick()

    assert stream_client.connections == []
    assert loop.empty_ticks == 1
    assert loop.state == LoopState.IDLE
    assert any("No active token addresses found." in r.getMessage() for r in caplog.records)


async def test_fetch_failure_is_treated_as_empty(manager, stream_client):
    loop = _loop(StaticAddresses(ConnectionError("db down")), manager)

    await loop.tick()

    assert stream_client.connections == []
    assert loop.empty_ticks == 1
    assert loop.failed_ticks == 0


async def test_tick_waits_for_session_to_end(manager, stream_client):
    loop = _loop(StaticAddresses(ADDRESSES), manager)

    tick = asyncio.create_task(loop.tick())
    await wait_until(lambda: stream_client.connections and stream_client.latest.writes)
    await asyncio.sleep(0.01)
    assert not tick.done()
    assert loop.state == LoopState.ACTIVE

    stream_client.latest.end()
    await asyncio.wait_for(tick, timeout=1.0)

    assert _included(stream_client.latest) == list(ADDRESSES)
    assert loop.reconfigurations == 1
    assert loop.state == LoopState.IDLE


async def test_stream_error_ends_tick_without_raising(manager, stream_client):
    loop = _loop(StaticAddresses(ADDRESSES), manager)

    tick = asyncio.create_task(loop.tick())
    await wait_until(lambda: stream_client.connections and stream_client.latest.writes)
    stream_client.latest.fail(TransportError("connection reset"))

    await asyncio.wait_for(tick, timeout=1.0)
    assert loop.failed_ticks == 0
    assert not manager.is_live


async def test_setup_failure_is_logged_and_swallowed(caplog):
    caplog.set_level(logging.ERROR, logger="pool_monitor")
    client = MockStreamClient(subscribe_error=ConnectionError("refused"))
    manager = StreamSessionManager(client, lambda event: asyncio.sleep(0))
    loop = _loop(StaticAddresses(ADDRESSES), manager)

    await loop.tick()

    assert loop.failed_ticks == 1
    assert "refused" in loop.last_error
    assert any("Stream error, restarting in next interval" in r.getMessage() for r in caplog.records)


async def test_run_reconfigures_each_tick_with_fresh_addresses():
    client = MockStreamClient(end_after_write=True)
    manager = StreamSessionManager(client, lambda event: asyncio.sleep(0))
    loop = _loop(StaticAddresses([MINT], [MINT, CURVE], [CURVE]), manager)

    await asyncio.wait_for(loop.run(max_ticks=3), timeout=2.0)

    assert [_included(c) for c in client.connections] == [[MINT], [MINT, CURVE], [CURVE]]
    assert client.max_open == 1
    assert loop.ticks == 3
    await manager.shutdown()


async def test_run_survives_failing_ticks():
    client = MockStreamClient(end_after_write=True)
    manager = StreamSessionManager(client, lambda event: asyncio.sleep(0))
    loop = _loop(StaticAddresses(ConnectionError("db down"), [], ADDRESSES), manager)

    await asyncio.wait_for(loop.run(max_ticks=3), timeout=2.0)

    assert len(client.connections) == 1
    assert loop.empty_ticks == 2
    await manager.shutdown()


async def test_empty_tick_leaves_previous_stream_running(manager, stream_client):
    loop = _loop(StaticAddresses(ADDRESSES, []), manager, session_max_lifetime=0.02)

    await loop.tick()
    assert manager.is_live

    await loop.tick()
    assert manager.is_live
    assert len(stream_client.connections) == 1


async def test_max_lifetime_hands_over_to_next_tick(manager, stream_client):
    loop = _loop(StaticAddresses([MINT], [CURVE]), manager, session_max_lifetime=0.02)

    await asyncio.wait_for(loop.tick(), timeout=1.0)
    first = stream_client.latest
    assert not first.closed

    await asyncio.wait_for(loop.tick(), timeout=1.0)
    assert first.closed
    assert _included(stream_client.latest) == [CURVE]
    assert stream_client.max_open == 1


async def test_stop_interrupts_a_waiting_tick(manager, stream_client):
    loop = _loop(StaticAddresses(ADDRESSES), manager, interval=60)

    runner = asyncio.create_task(loop.run())
    await wait_until(lambda: stream_client.connections and stream_client.latest.writes)

    loop.stop()
    await asyncio.wait_for(runner, timeout=1.0)

    assert loop.stopped
    assert loop.ticks == 1


async def test_stop_interrupts_the_interval_sleep(manager):
    loop = _loop(StaticAddresses([]), manager, interval=60)

    runner = asyncio.create_task(loop.run())
    await wait_until(lambda: loop.ticks == 1)

    loop.stop()
    await asyncio.wait_for(runner, timeout=1.0)


async def test_build_filter_uses_commitment_and_name(manager):
    loop = _loop(StaticAddresses([]), manager)
    request = loop.build_filter((MINT,)).to_request()

    assert request["commitment"] == "confirmed"
    assert request["transactions"]["pumpfun"]["accountInclude"] == [MINT]


async def test_stats(manager):
    loop = _loop(StaticAddresses([]), manager)
    await loop.tick()

    stats = loop.get_stats()
    assert stats["ticks"] == 1
    assert stats["state"] == "idle"
    assert stats["last_tick"] is not None
