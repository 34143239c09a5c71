"""
Stream session management.

The manager owns at most one live subscription. Reconfiguring always closes
the previous session and waits for its transport to acknowledge the close
before a new one is opened, so two subscriptions never deliver the same
transaction twice.
"""
import asyncio
import itertools
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from .. import metrics
from ..config.constants import MonitoringThresholds, SessionState
from .errors import SessionSetupError, SessionTeardownError
from .models import RawEvent, SubscriptionFilter
from .transport import StreamClient, StreamConnection

logger = logging.getLogger(__name__)

EventHandler = Callable[[RawEvent], Awaitable[None]]


class StreamSession:
    """One live subscription: its transport, reader task and completion signal."""

    def __init__(self, session_id: int, connection: StreamConnection,
                 dispatch: Callable[[RawEvent], None],
                 close_timeout: float = MonitoringThresholds.SHUTDOWN_TIMEOUT):
        self.session_id = session_id
        self.state = SessionState.OPENING
        self.error: Optional[BaseException] = None
        self.events_received = 0
        self.opened_at = datetime.now()
        self.closed_at: Optional[datetime] = None
        self._connection = connection
        self._dispatch = dispatch
        self._close_timeout = close_timeout
        self._closed = asyncio.Event()
        self._reader: Optional[asyncio.Task] = None

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    def start(self):
        self._reader = asyncio.create_task(self._read(), name=f"stream_session_{self.session_id}")
        metrics.STREAM_SESSION_LIVE.set(1)

    async def _read(self):
        try:
            async for event in self._connection.events():
                self.events_received += 1
                metrics.EVENTS_RECEIVED.inc()
                self._dispatch(event)
            logger.info(f"Stream {self.session_id} ended")
            if self.state != SessionState.CLOSING:
                metrics.STREAM_SESSIONS.labels(outcome='ended').inc()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.error = e
            self.state = SessionState.FAILED
            metrics.STREAM_SESSIONS.labels(outcome='errored').inc()
            logger.error(f"Stream {self.session_id} error: {e}")
        finally:
            await self._release_transport()
            if self.state != SessionState.FAILED:
                self.state = SessionState.CLOSED
            self.closed_at = datetime.now()
            metrics.STREAM_SESSION_LIVE.set(0)
            self._closed.set()

    async def _release_transport(self):
        if self._connection.closed:
            return
        try:
            await self._connection.close()
        except Exception as e:
            logger.warning(f"Error closing stream {self.session_id} transport: {e}")

    async def close(self):
        """Close the transport and wait until the reader has fully stopped."""
        if self.is_closed:
            return

        self.state = SessionState.CLOSING
        try:
            await self._connection.close()
        except Exception as e:
            raise SessionTeardownError(f"stream {self.session_id} did not close: {e}") from e

        if self._reader is None:
            self.state = SessionState.CLOSED
            self.closed_at = datetime.now()
            self._closed.set()
            return

        try:
            await asyncio.wait_for(asyncio.shield(self._closed.wait()), timeout=self._close_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Stream {self.session_id} reader did not stop after close, cancelling it")
            self._reader.cancel()
            await asyncio.gather(self._reader, return_exceptions=True)
            self._closed.set()

    async def wait_closed(self):
        await self._closed.wait()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'state': self.state.value,
            'events_received': self.events_received,
            'opened_at': self.opened_at.isoformat(),
            'closed_at': self.closed_at.isoformat() if self.closed_at else None,
            'error': str(self.error) if self.error else None,
        }


class SessionHandle:
    """Caller-facing view of a session; the transport itself is never exposed."""

    def __init__(self, session: StreamSession):
        self._session = session

    @property
    def session_id(self) -> int:
        return self._session.session_id

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def error(self) -> Optional[BaseException]:
        return self._session.error

    @property
    def events_received(self) -> int:
        return self._session.events_received

    def done(self) -> bool:
        return self._session.is_closed

    async def wait_closed(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the transport to end, gracefully or through an error.

        Returns False if ``timeout`` elapsed first; the session stays live
        in that case.
        """
        if timeout is None:
            await self._session.wait_closed()
            return True
        try:
            await asyncio.wait_for(asyncio.shield(self._session.wait_closed()), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False


class StreamSessionManager:
    """Owns the single current stream session."""

    def __init__(self, client: StreamClient, on_event: EventHandler,
                 close_timeout: float = MonitoringThresholds.SHUTDOWN_TIMEOUT):
        self._client = client
        self._on_event = on_event
        self._close_timeout = close_timeout
        self._session: Optional[StreamSession] = None
        self._handlers: Set[asyncio.Task] = set()
        self._ids = itertools.count(1)
        self.sessions_opened = 0
        self.setup_failures = 0
        self.teardown_failures = 0

    @property
    def is_live(self) -> bool:
        return self._session is not None and not self._session.is_closed

    @property
    def in_flight(self) -> int:
        return len(self._handlers)

    async def reconfigure(self, subscription: SubscriptionFilter) -> SessionHandle:
        """
        Replace the current subscription with one for ``subscription``.

        Raises SessionTeardownError if the previous session would not close
        (it is kept so the next call retries) and SessionSetupError if the
        new one cannot be opened or its filter is not acknowledged.
        """
        if self._session is not None:
            previous = self._session
            if not previous.is_closed:
                logger.info(f"Stopping existing stream {previous.session_id}...")
                try:
                    await previous.close()
                except SessionTeardownError:
                    self.teardown_failures += 1
                    raise
                metrics.STREAM_SESSIONS.labels(outcome='superseded').inc()
            self._session = None

        try:
            connection = await self._client.subscribe()
        except SessionSetupError:
            self.setup_failures += 1
            metrics.STREAM_SESSIONS.labels(outcome='setup_failed').inc()
            raise
        except Exception as e:
            self.setup_failures += 1
            metrics.STREAM_SESSIONS.labels(outcome='setup_failed').inc()
            raise SessionSetupError(f"could not open stream: {e}") from e

        session = StreamSession(next(self._ids), connection, self._spawn_handler, self._close_timeout)
        self._session = session
        session.start()

        try:
            await connection.write(subscription.to_request())
        except Exception as e:
            logger.error(f"Failed to send subscribe request: {e}")
            self.setup_failures += 1
            metrics.STREAM_SESSIONS.labels(outcome='setup_failed').inc()
            try:
                await session.close()
            except SessionTeardownError as close_error:
                # Still tracked so the next reconfigure retries the close first
                self.teardown_failures += 1
                logger.warning(f"Could not close rejected stream {session.session_id}: {close_error}")
            else:
                self._session = None
            raise SessionSetupError(f"subscribe request failed: {e}") from e

        if not session.is_closed:
            session.state = SessionState.ACTIVE
        self.sessions_opened += 1
        metrics.STREAM_SESSIONS.labels(outcome='opened').inc()
        filter_sizes = {name: len(f.account_include) for name, f in subscription.transactions.items()}
        logger.info(f"Stream {session.session_id} active ({subscription.commitment.value}): {filter_sizes}")
        return SessionHandle(session)

    def _spawn_handler(self, event: RawEvent):
        task = asyncio.create_task(self._run_handler(event))
        self._handlers.add(task)
        task.add_done_callback(self._handlers.discard)

    async def _run_handler(self, event: RawEvent):
        try:
            await self._on_event(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error processing stream data for {event.signature}: {e}")

    async def drain(self):
        """Wait for every in-flight event handler to finish."""
        while self._handlers:
            await asyncio.gather(*list(self._handlers), return_exceptions=True)

    async def shutdown(self):
        """Close the live session and cancel outstanding event handlers."""
        if self._session is not None:
            try:
                await self._session.close()
            except SessionTeardownError as e:
                logger.error(f"Stream teardown failed during shutdown: {e}")
            self._session = None

        for task in list(self._handlers):
            task.cancel()
        if self._handlers:
            await asyncio.gather(*list(self._handlers), return_exceptions=True)

    def get_stats(self) -> Dict[str, Any]:
        return {
            'live': self.is_live,
            'sessions_opened': self.sessions_opened,
            'setup_failures': self.setup_failures,
            'teardown_failures': self.teardown_failures,
            'in_flight_events': self.in_flight,
            'current_session': self._session.to_dict() if self._session else None,
        }
