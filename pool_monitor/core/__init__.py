"""Core monitoring components."""

from .address_source import AddressSource
from .enrichment import EventEnricher, calculate_valuation
from .errors import (
    MonitorError,
    SourceUnavailableError,
    SessionSetupError,
    SessionTeardownError,
    TransportError,
    RpcError,
    EnrichmentError
)
from .models import (
    AddressSet,
    CommitmentLevel,
    TransactionFilter,
    SubscriptionFilter,
    TokenBalanceEntry,
    RawEvent,
    AccountInfo,
    BondingCurveInfo,
    ValuationResult,
    PoolSnapshot
)
from .refresh_loop import RefreshLoop
from .rpc_client import SolanaRpcClient
from .stream_session import StreamSessionManager, SessionHandle
from .transport import StreamClient, StreamConnection, WebsocketStreamClient

__all__ = [
    'AddressSource',
    'EventEnricher',
    'calculate_valuation',
    'MonitorError',
    'SourceUnavailableError',
    'SessionSetupError',
    'SessionTeardownError',
    'TransportError',
    'RpcError',
    'EnrichmentError',
    'AddressSet',
    'CommitmentLevel',
    'TransactionFilter',
    'SubscriptionFilter',
    'TokenBalanceEntry',
    'RawEvent',
    'AccountInfo',
    'BondingCurveInfo',
    'ValuationResult',
    'PoolSnapshot',
    'RefreshLoop',
    'SolanaRpcClient',
    'StreamSessionManager',
    'SessionHandle',
    'StreamClient',
    'StreamConnection',
    'WebsocketStreamClient'
]
