"""
Streaming transport for transaction updates.

``StreamClient`` / ``StreamConnection`` describe what the session manager
needs from a push-based subscription. ``WebsocketStreamClient`` implements
them over an aiohttp websocket speaking the ``transactionSubscribe``
JSON-RPC stream: every named transaction filter becomes one subscription,
acknowledged by its JSON-RPC response, and ``transactionNotification``
messages are turned into RawEvents.
"""
import asyncio
import itertools
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Tuple

import aiohttp

from ..config.constants import APIConfig
from .errors import SessionSetupError, TransportError
from .models import RawEvent

logger = logging.getLogger(__name__)


class StreamConnection(Protocol):
    """One open bidirectional stream."""

    @property
    def closed(self) -> bool:
        ...

    def events(self) -> AsyncIterator[RawEvent]:
        """Yield events until the transport ends; raise TransportError on failure."""
        ...

    async def write(self, request: Dict[str, Any]) -> None:
        """Submit a subscribe request and wait until the server acknowledges it."""
        ...

    async def close(self) -> None:
        """Close the transport and wait for the close to be acknowledged."""
        ...


class StreamClient(Protocol):
    """Opens new stream connections."""

    async def subscribe(self) -> StreamConnection:
        ...


def build_subscribe_messages(request: Dict[str, Any], ids) -> List[Tuple[int, str, Dict[str, Any]]]:
    """Translate a subscribe request into one ``transactionSubscribe`` call per named filter."""
    transactions = request.get('transactions') or {}
    if not transactions:
        raise TransportError("subscribe request carries no transaction filters")

    options = {
        "commitment": request.get('commitment') or "confirmed",
        "encoding": "jsonParsed",
        "transactionDetails": "full",
        "showRewards": False,
        "maxSupportedTransactionVersion": 0,
    }

    messages = []
    for name, tx_filter in transactions.items():
        params = {
            "vote": tx_filter.get('vote', False),
            "failed": tx_filter.get('failed', False),
            "accountInclude": list(tx_filter.get('accountInclude') or []),
            "accountExclude": list(tx_filter.get('accountExclude') or []),
            "accountRequired": list(tx_filter.get('accountRequired') or []),
        }
        if tx_filter.get('signature'):
            params["signature"] = tx_filter['signature']

        msg_id = next(ids)
        messages.append((msg_id, name, {
            "jsonrpc": "2.0",
            "id": msg_id,
            "method": "transactionSubscribe",
            "params": [params, options],
        }))
    return messages


class WebsocketStreamConnection:
    """A single websocket carrying one or more transaction subscriptions."""

    def __init__(self, ws: aiohttp.ClientWebSocketResponse, ack_timeout: float = APIConfig.ACK_TIMEOUT):
        self._ws = ws
        self._ack_timeout = ack_timeout
        self._ids = itertools.count(1)
        self._pending: Dict[int, Tuple[str, asyncio.Future]] = {}
        self._subscriptions: Dict[Any, str] = {}

    @property
    def closed(self) -> bool:
        return self._ws.closed

    async def write(self, request: Dict[str, Any]) -> None:
        loop = asyncio.get_running_loop()
        futures = []
        msg_ids = []
        try:
            for msg_id, name, message in build_subscribe_messages(request, self._ids):
                future = loop.create_future()
                self._pending[msg_id] = (name, future)
                msg_ids.append(msg_id)
                futures.append(future)
                await self._ws.send_json(message)

            try:
                await asyncio.wait_for(asyncio.gather(*futures), timeout=self._ack_timeout)
            except asyncio.TimeoutError:
                raise TransportError(f"subscription not acknowledged within {self._ack_timeout}s")
        finally:
            for msg_id in msg_ids:
                self._pending.pop(msg_id, None)
            for future in futures:
                if not future.done():
                    future.cancel()
                elif not future.cancelled():
                    future.exception()

    async def events(self) -> AsyncIterator[RawEvent]:
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        data = json.loads(msg.data)
                    except ValueError:
                        logger.warning(f"Ignoring non-JSON stream message: {msg.data[:100]!r}")
                        continue
                    event = self._handle_message(data)
                    if event is not None:
                        yield event
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    raise TransportError(f"websocket error: {self._ws.exception()}")
        finally:
            self._fail_pending(TransportError("stream ended before the subscription was acknowledged"))

    def _handle_message(self, data: Dict[str, Any]) -> Optional[RawEvent]:
        if not isinstance(data, dict):
            return None

        msg_id = data.get('id')
        if msg_id is not None and msg_id in self._pending:
            name, future = self._pending[msg_id]
            if not future.done():
                if data.get('error'):
                    error = data['error']
                    message = error.get('message', error) if isinstance(error, dict) else error
                    future.set_exception(TransportError(f"subscription '{name}' rejected: {message}"))
                else:
                    self._subscriptions[data.get('result')] = name
                    future.set_result(data.get('result'))
            return None

        if data.get('method') == 'transactionNotification':
            params = data.get('params') or {}
            name = self._subscriptions.get(params.get('subscription'))
            return RawEvent.from_transaction(params.get('result') or {}, filters=(name,) if name else ())

        return None

    def _fail_pending(self, error: Exception):
        for _, future in self._pending.values():
            if not future.done():
                future.set_exception(error)

    async def close(self) -> None:
        # aiohttp sends the close frame and waits for the peer's reply
        await self._ws.close()


class WebsocketStreamClient:
    """Opens websocket stream connections, sharing one aiohttp session."""

    def __init__(self, url: str, heartbeat: float = APIConfig.WS_HEARTBEAT,
                 ack_timeout: float = APIConfig.ACK_TIMEOUT,
                 session: Optional[aiohttp.ClientSession] = None):
        self.url = url
        self.heartbeat = heartbeat
        self.ack_timeout = ack_timeout
        self._session = session
        self._owns_session = session is None

    async def subscribe(self) -> WebsocketStreamConnection:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

        try:
            ws = await self._session.ws_connect(self.url, heartbeat=self.heartbeat)
        except aiohttp.WSServerHandshakeError as e:
            raise SessionSetupError(f"websocket handshake failed: {e}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SessionSetupError(f"could not connect to stream: {e}") from e

        return WebsocketStreamConnection(ws, ack_timeout=self.ack_timeout)

    async def close(self):
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None
