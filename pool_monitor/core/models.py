"""Value types passed between the refresh loop, the stream and the enricher."""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from ..config.constants import SolanaConstants
from .utils import safe_int

AddressSet = Tuple[str, ...]


class CommitmentLevel(Enum):
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class TransactionFilter:
    """One named transaction filter of a subscribe request."""
    vote: bool = False
    failed: bool = False
    account_include: Tuple[str, ...] = ()
    account_exclude: Tuple[str, ...] = ()
    account_required: Tuple[str, ...] = ()
    signature: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'vote': self.vote,
            'failed': self.failed,
            'signature': self.signature,
            'accountInclude': list(self.account_include),
            'accountExclude': list(self.account_exclude),
            'accountRequired': list(self.account_required),
        }


@dataclass(frozen=True)
class SubscriptionFilter:
    """
    Everything a stream should deliver.

    Never patched in place: every refresh builds a new one and the stream
    session manager swaps it in wholesale.
    """
    transactions: Mapping[str, TransactionFilter]
    commitment: CommitmentLevel = CommitmentLevel.CONFIRMED

    @classmethod
    def for_addresses(cls, name: str, addresses: Sequence[str],
                      commitment: CommitmentLevel = CommitmentLevel.CONFIRMED) -> "SubscriptionFilter":
        return cls(
            transactions={name: TransactionFilter(vote=False, failed=False, account_include=tuple(addresses))},
            commitment=commitment,
        )

    def to_request(self) -> Dict[str, Any]:
        """Render the subscribe-request message sent as the stream's first write."""
        return {
            'accounts': {},
            'slots': {},
            'transactions': {name: f.to_dict() for name, f in self.transactions.items()},
            'transactionsStatus': {},
            'blocks': {},
            'blocksMeta': {},
            'entry': {},
            'accountsDataSlice': [],
            'ping': None,
            'commitment': self.commitment.value,
        }


@dataclass(frozen=True)
class TokenBalanceEntry:
    account_index: int
    mint: str
    owner: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Optional["TokenBalanceEntry"]:
        """Parse one ``postTokenBalances`` item; None when it has no mint."""
        mint = data.get('mint')
        if not mint:
            return None
        return cls(
            account_index=safe_int(data.get('accountIndex'), 0),
            mint=mint,
            owner=data.get('owner') or None,
        )


@dataclass(frozen=True)
class RawEvent:
    """One transaction update delivered by the stream."""
    signature: Optional[str]
    slot: Optional[int]
    post_token_balances: Tuple[TokenBalanceEntry, ...] = ()
    filters: Tuple[str, ...] = ()

    @classmethod
    def from_transaction(cls, result: Mapping[str, Any], filters: Sequence[str] = ()) -> "RawEvent":
        """
        Build an event from a transaction notification result.

        Accepts ``{"signature", "slot", "transaction": {"meta": ...}}`` as well
        as a bare ``{"meta": ...}`` transaction. Missing metadata yields an
        event with no token balances rather than an error.
        """
        tx = result.get('transaction') or {}
        meta = tx.get('meta') if isinstance(tx, Mapping) else None
        if meta is None:
            meta = result.get('meta') or {}

        entries = []
        for item in meta.get('postTokenBalances') or []:
            if isinstance(item, Mapping):
                entry = TokenBalanceEntry.from_dict(item)
                if entry is not None:
                    entries.append(entry)

        return cls(
            signature=result.get('signature'),
            slot=safe_int(result.get('slot')),
            post_token_balances=tuple(entries),
            filters=tuple(filters),
        )


@dataclass(frozen=True)
class AccountInfo:
    address: str
    owner: str
    lamports: int


@dataclass(frozen=True)
class BondingCurveInfo:
    address: str
    lamports: int

    @property
    def sol_balance(self) -> Decimal:
        return Decimal(self.lamports) / SolanaConstants.LAMPORTS_PER_SOL


@dataclass(frozen=True)
class ValuationResult:
    sol_value_usd: Decimal
    tokens_sold: Decimal
    price_per_token: Decimal
    pool_token_value_usd: Decimal
    price: Decimal
    market_proxy: Decimal


@dataclass
class PoolSnapshot:
    """Everything logged for one successfully valued event."""
    mint: str
    bonding_curve: BondingCurveInfo
    pool_token_balance: Decimal
    current_supply: Decimal
    valuation: ValuationResult
    signature: Optional[str] = None
    filters: Tuple[str, ...] = ()
