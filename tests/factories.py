"""Synthetic stream payload factories for testing."""

from __future__ import annotations

from typing import Any

from pool_monitor.core.models import RawEvent, TokenBalanceEntry

PROGRAM_ID = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"
CURVE = "5XAjcZmfSYdMuqNDrsUv7sYpBm5NmnTYkvXkyEbRYjkv"
WALLET = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
OTHER_CURVE = "3Kz9bQ1n8sYtEVd7Pv6e1oJ9hXq2mJg5Ywh7Lq1cTnVb"

ADDRESSES = [MINT, "HeLp6NuQkmYB4pYWo2zYs22mESHXPQYzXbB8n4V98jwC"]


def make_entry(
    owner: str | None = WALLET,
    mint: str = MINT,
    account_index: int = 1,
) -> TokenBalanceEntry:
    return TokenBalanceEntry(
        account_index=account_index,
        mint=mint,
        owner=owner,
    )


def make_event(
    *owners: str | None,
    mint: str = MINT,
    signature: str = "sig-1",
    slot: int = 250_000_000,
    filters: tuple[str, ...] = ("pumpfun",),
) -> RawEvent:
    entries = tuple(
        make_entry(owner=owner, mint=mint, account_index=i)
        for i, owner in enumerate(owners)
    )
    return RawEvent(signature=signature, slot=slot, post_token_balances=entries, filters=filters)


def make_token_balance_dict(
    owner: str | None = WALLET,
    mint: str = MINT,
    account_index: int = 1,
    ui_amount_string: str = "1000",
) -> dict[str, Any]:
    item: dict[str, Any] = {
        "accountIndex": account_index,
        "mint": mint,
        "programId": TOKEN_PROGRAM,
        "uiTokenAmount": {
            "amount": ui_amount_string + "000000",
            "decimals": 6,
            "uiAmount": float(ui_amount_string),
            "uiAmountString": ui_amount_string,
        },
    }
    if owner is not None:
        item["owner"] = owner
    return item


def make_notification(
    subscription: int = 4242,
    signature: str = "sig-1",
    slot: int = 250_000_000,
    post_token_balances: list[dict[str, Any]] | None = None,
    include_meta: bool = True,
) -> dict[str, Any]:
    """A ``transactionNotification`` message as sent by the stream."""
    transaction: dict[str, Any] = {"transaction": {"signatures": [signature]}}
    if include_meta:
        transaction["meta"] = {
            "err": None,
            "fee": 5000,
            "postTokenBalances": post_token_balances if post_token_balances is not None else [
                make_token_balance_dict(owner=CURVE, account_index=1),
                make_token_balance_dict(owner=WALLET, account_index=2),
            ],
        }
    return {
        "jsonrpc": "2.0",
        "method": "transactionNotification",
        "params": {
            "subscription": subscription,
            "result": {"transaction": transaction, "signature": signature, "slot": slot},
        },
    }
