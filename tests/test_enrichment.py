"""Event enrichment: bonding curve resolution, lookups and per-event isolation."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal

from pool_monitor.core.enrichment import EventEnricher
from pool_monitor.core.errors import EnrichmentError
from pool_monitor.core.models import RawEvent

from tests.factories import CURVE, MINT, OTHER_CURVE, PROGRAM_ID, WALLET, make_event, make_entry

import pytest


# ── Bonding curve resolution ─────────────────────────────────────


async def test_first_matching_owner_wins(enricher, lookups):
    """Entries 0 and 2 are both curve accounts; entry 0 is chosen."""
    entries = [make_entry(owner=CURVE), make_entry(owner=WALLET), make_entry(owner=OTHER_CURVE)]

    curve = await enricher.resolve_bonding_curve(entries)

    assert curve is not None
    assert curve.address == CURVE
    assert curve.lamports == 10_000_000_000
    # Scan stops at the first match
    assert lookups.account_calls == [CURVE]


async def test_scan_order_follows_entries(enricher, lookups):
    entries = [make_entry(owner=WALLET), make_entry(owner=OTHER_CURVE), make_entry(owner=CURVE)]

    curve = await enricher.resolve_bonding_curve(entries)

    assert curve.address == OTHER_CURVE
    assert lookups.account_calls == [WALLET, OTHER_CURVE]


async def test_missing_accounts_and_owners_are_skipped(enricher, lookups):
    unknown = "8qbHbw2BbbTHBW1sbeqakYXVKRQM8Ne7pLK7m6CVfeR"
    entries = [make_entry(owner=None), make_entry(owner=unknown), make_entry(owner=CURVE)]

    curve = await enricher.resolve_bonding_curve(entries)

    assert curve.address == CURVE
    assert lookups.account_calls == [unknown, CURVE]


async def test_repeated_owner_looked_up_once(enricher, lookups):
    entries = [make_entry(owner=WALLET), make_entry(owner=WALLET)]

    assert await enricher.resolve_bonding_curve(entries) is None
    assert lookups.account_calls == [WALLET]


async def test_sol_balance_converted_from_lamports(enricher):
    curve = await enricher.resolve_bonding_curve([make_entry(owner=CURVE)])
    assert curve.sol_balance == Decimal("10")


# ── enrich() ─────────────────────────────────────────────────────


async def test_enrich_full_event(enricher, lookups):
    snapshot = await enricher.enrich(make_event(WALLET, CURVE))

    assert snapshot is not None
    assert snapshot.mint == MINT
    assert snapshot.bonding_curve.address == CURVE
    assert snapshot.current_supply == Decimal("1000")
    assert snapshot.pool_token_balance == Decimal("500")
    assert snapshot.valuation.price == Decimal("5.388")
    assert snapshot.valuation.market_proxy == Decimal("5388")
    assert lookups.supply_calls == [MINT]
    assert lookups.balance_calls == [(CURVE, MINT)]


async def test_event_without_balances_is_a_noop(enricher, lookups):
    event = RawEvent(signature="sig-empty", slot=1, post_token_balances=())

    assert await enricher.enrich(event) is None
    assert lookups.account_calls == []
    assert lookups.supply_calls == []


async def test_no_bonding_curve_suppresses_everything(enricher, lookups):
    assert await enricher.enrich(make_event(WALLET)) is None
    # No partial valuation: supply and balance are never fetched
    assert lookups.supply_calls == []
    assert lookups.balance_calls == []


async def test_missing_supply_raises(enricher, lookups):
    del lookups.supplies[MINT]
    with pytest.raises(EnrichmentError):
        await enricher.enrich(make_event(CURVE))


async def test_missing_pool_account_raises(enricher, lookups):
    del lookups.balances[(CURVE, MINT)]
    with pytest.raises(EnrichmentError):
        await enricher.enrich(make_event(CURVE))


async def test_empty_pool_is_suppressed(enricher, lookups):
    lookups.balances[(CURVE, MINT)] = Decimal("0")
    assert await enricher.enrich(make_event(CURVE)) is None


async def test_uses_configured_program_id(lookups):
    lookups.add_account(WALLET, "SomeOtherProgram1111111111111111111111111111", 1)
    enricher = EventEnricher(lookups, program_id="SomeOtherProgram1111111111111111111111111111")

    curve = await enricher.resolve_bonding_curve([make_entry(owner=CURVE), make_entry(owner=WALLET)])
    assert curve.address == WALLET


# ── handle_event(): the per-event boundary ───────────────────────


async def test_handle_event_logs_valuation(enricher, caplog):
    caplog.set_level(logging.INFO, logger="pool_monitor")

    snapshot = await enricher.handle_event(make_event(CURVE))

    assert snapshot is not None
    lines = [r.getMessage() for r in caplog.records if "Latest pool" in r.getMessage()]
    assert len(lines) == 1
    assert MINT in lines[0]
    assert CURVE in lines[0]
    assert "price: $5.388" in lines[0]
    assert "market cap: $5388.000 (~$5.4K)" in lines[0]
    assert enricher.stats["valuations"] == 1


async def test_snapshot_carries_matched_filter(enricher, caplog):
    caplog.set_level(logging.DEBUG, logger="pool_monitor")

    snapshot = await enricher.handle_event(make_event(CURVE, filters=("pumpfun",)))

    assert snapshot.filters == ("pumpfun",)
    detail = [r.getMessage() for r in caplog.records if "Valuation detail" in r.getMessage()]
    assert len(detail) == 1
    assert "filter=pumpfun" in detail[0]


async def test_degenerate_valuation_is_not_logged(enricher, lookups, caplog):
    caplog.set_level(logging.DEBUG, logger="pool_monitor")
    lookups.balances[(CURVE, MINT)] = Decimal("0")

    assert await enricher.handle_event(make_event(CURVE)) is None

    messages = [r.getMessage() for r in caplog.records]
    assert not any("Latest pool" in m for m in messages)
    assert not any("NaN" in m or "Infinity" in m for m in messages)
    assert enricher.stats["skipped"] == 1


async def test_handle_event_swallows_lookup_failure(enricher, lookups, caplog):
    caplog.set_level(logging.ERROR, logger="pool_monitor")
    lookups.failing_mints.add(MINT)

    assert await enricher.handle_event(make_event(CURVE, signature="sig-bad")) is None

    assert enricher.stats["failures"] == 1
    assert any("sig-bad" in r.getMessage() for r in caplog.records)


async def test_one_failing_event_does_not_affect_the_next(enricher, lookups):
    bad_mint = "BadMint1111111111111111111111111111111111111"
    lookups.failing_mints.add(bad_mint)

    first = await enricher.handle_event(make_event(CURVE, mint=bad_mint, signature="sig-1"))
    second = await enricher.handle_event(make_event(CURVE, signature="sig-2"))

    assert first is None
    assert second is not None
    assert second.signature == "sig-2"


async def test_handle_event_times_out(lookups):
    lookups.delay = 0.5
    enricher = EventEnricher(lookups, program_id=PROGRAM_ID, event_timeout=0.05)

    assert await enricher.handle_event(make_event(CURVE)) is None
    assert enricher.stats["failures"] == 1


async def test_concurrent_events_are_independent(enricher):
    results = await asyncio.gather(
        enricher.handle_event(make_event(CURVE, signature="a")),
        enricher.handle_event(make_event(WALLET, signature="b")),
        enricher.handle_event(make_event(OTHER_CURVE, signature="c")),
    )

    assert results[0].bonding_curve.address == CURVE
    assert results[1] is None
    assert results[2].bonding_curve.address == OTHER_CURVE
