"""
Base streaming client for asyncio websocket subscriptions.

FeedConnection keeps exactly one live subscription to an upstream stream:
it subscribes on open, keeps a text PING/PONG heartbeat, forces a
reconnect when the stream goes silent, and reconnects with bounded
exponential backoff. Parsed messages are pushed to `out_queue`.
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

import orjson
import websockets
from websockets.exceptions import ConnectionClosed

from ..errors import StaleFeedError
from ..types import Event, FeedState, wall_ms

logger = logging.getLogger(__name__)

PING = "PING"
PONG = "PONG"

Connector = Callable[[str], Awaitable[Any]]


class ExponentialBackoff:
    """Exponential backoff with jitter for reconnection."""

    def __init__(self, min_seconds: float = 1.0, max_seconds: float = 60.0):
        self.min_seconds = min_seconds
        self.max_seconds = max_seconds
        self._attempts = 0

    @property
    def attempts(self) -> int:
        return self._attempts

    def next_delay(self) -> float:
        """Get next delay with exponential backoff and jitter."""
        delay = min(self.min_seconds * (2 ** self._attempts), self.max_seconds)
        self._attempts += 1
        # Jitter (50-100% of delay)
        return delay * (0.5 + random.random() * 0.5)

    def reset(self) -> None:
        """Reset attempt counter."""
        self._attempts = 0


async def default_connector(url: str):
    """Open a websocket; protocol-level pings are off, the feed heartbeats itself."""
    return await websockets.connect(
        url,
        ping_interval=None,
        max_size=2**20,
    )


class FeedConnection(ABC):
    """
    Reconnecting, heartbeat-maintaining subscription to one stream.

    State machine:
        DISCONNECTED --connect()--> CONNECTING --open--> SUBSCRIBED
        SUBSCRIBED --close/error/silence--> DISCONNECTED --backoff--> CONNECTING
        any --disconnect()--> CLOSING --> DISCONNECTED (terminal)

    Subclasses provide the subscribe message and the payload parser.
    """

    def __init__(
        self,
        url: str,
        name: str = "feed",
        heartbeat_interval_s: float = 10.0,
        liveness_multiplier: float = 3.0,
        backoff: Optional[ExponentialBackoff] = None,
        max_retries: int = 0,
        connector: Optional[Connector] = None,
        queue_maxsize: int = 10000,
    ):
        """
        Initialize the connection.

        Args:
            url: Websocket URL
            name: Name used in log lines
            heartbeat_interval_s: Seconds between outbound PINGs
            liveness_multiplier: Reconnect after this many silent heartbeat intervals
            backoff: Reconnect backoff policy
            max_retries: Consecutive failed attempts before giving up (0 = never)
            connector: Coroutine opening the socket (injectable for tests)
            queue_maxsize: Capacity of out_queue
        """
        self._url = url
        self._name = name
        self._heartbeat_interval_s = heartbeat_interval_s
        self._liveness_timeout_s = heartbeat_interval_s * liveness_multiplier
        self._backoff = backoff or ExponentialBackoff()
        self._max_retries = max_retries
        self._connector = connector or default_connector

        self._state = FeedState.DISCONNECTED
        self._ws = None
        self._task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._stopping = False
        self._subscribed = asyncio.Event()

        # Stats
        self._reconnect_count = 0
        self._message_count = 0
        self._parse_error_count = 0
        self._last_message_ms: Optional[int] = None

        self.out_queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=queue_maxsize)

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def connected(self) -> bool:
        """Whether the subscription is live."""
        return self._state == FeedState.SUBSCRIBED

    @property
    def reconnect_count(self) -> int:
        return self._reconnect_count

    @property
    def message_count(self) -> int:
        return self._message_count

    @property
    def parse_error_count(self) -> int:
        return self._parse_error_count

    @property
    def last_message_ms(self) -> Optional[int]:
        return self._last_message_ms

    # --- subclass hooks ---

    @abstractmethod
    def _subscribe_message(self) -> Optional[dict]:
        """Message sent once per connection, None to send nothing."""

    @abstractmethod
    def _parse(self, data: Any) -> list[Event]:
        """Turn one decoded payload into events; may raise on bad schema."""

    # --- lifecycle ---

    async def connect(self) -> None:
        """
        Start the connection in the background.

        No-op while already CONNECTING or SUBSCRIBED.
        """
        if self._state in (FeedState.CONNECTING, FeedState.SUBSCRIBED):
            return
        if self._task is not None and not self._task.done():
            return

        self._stopping = False
        self._subscribed.clear()
        self._state = FeedState.CONNECTING
        self._task = asyncio.create_task(self._run(), name=f"{self._name}-run")

    async def wait_subscribed(self, timeout: Optional[float] = None) -> bool:
        """Wait until the subscription is live; False on timeout."""
        try:
            await asyncio.wait_for(self._subscribed.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def disconnect(self) -> None:
        """
        Close the connection for good.

        Cancels the heartbeat and any pending reconnect, closes the socket
        and leaves the feed DISCONNECTED with no automatic restart.
        """
        if self._task is None and self._state == FeedState.DISCONNECTED:
            return

        logger.info(f"{self._name}: Disconnecting")
        self._stopping = True
        self._state = FeedState.CLOSING
        self._subscribed.clear()

        await self._stop_heartbeat()
        await self._close_socket()

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._state = FeedState.DISCONNECTED
        logger.info(f"{self._name}: Disconnected")

    # --- internals ---

    async def _run(self) -> None:
        """Connect, subscribe and read until told to stop."""
        failures = 0

        while not self._stopping:
            self._state = FeedState.CONNECTING
            try:
                logger.info(f"{self._name}: Connecting to {self._url[:60]}")
                self._ws = await self._connector(self._url)
                await self._on_open()
                failures = 0
                await self._receive_loop()
            except asyncio.CancelledError:
                raise
            except ConnectionClosed as e:
                logger.warning(f"{self._name}: Connection closed: {e}")
            except StaleFeedError as e:
                logger.warning(f"{self._name}: {e}, forcing reconnect")
            except Exception as e:
                logger.warning(f"{self._name}: Connection error: {e}")
            finally:
                self._subscribed.clear()
                await self._stop_heartbeat()
                await self._close_socket()

            if self._stopping:
                break

            self._state = FeedState.DISCONNECTED
            failures += 1
            if self._max_retries and failures > self._max_retries:
                logger.error(
                    f"{self._name}: Giving up after {self._max_retries} "
                    f"consecutive failed attempts"
                )
                break

            delay = self._backoff.next_delay()
            self._reconnect_count += 1
            logger.info(f"{self._name}: Reconnecting in {delay:.1f}s...")
            await asyncio.sleep(delay)

        self._state = FeedState.DISCONNECTED

    async def _on_open(self) -> None:
        """Send the subscription, start heartbeating, mark SUBSCRIBED."""
        msg = self._subscribe_message()
        if msg is not None:
            await self._ws.send(orjson.dumps(msg).decode())

        self._state = FeedState.SUBSCRIBED
        self._backoff.reset()
        self._subscribed.set()
        self._heartbeat_task = asyncio.create_task(
            self._heartbeat_loop(), name=f"{self._name}-heartbeat"
        )
        logger.info(f"{self._name}: Subscribed")

    async def _receive_loop(self) -> None:
        """Read frames until the socket closes or goes silent."""
        while True:
            try:
                raw = await asyncio.wait_for(
                    self._ws.recv(), timeout=self._liveness_timeout_s
                )
            except asyncio.TimeoutError:
                raise StaleFeedError(
                    f"No traffic for {self._liveness_timeout_s:.0f}s"
                ) from None

            self._last_message_ms = wall_ms()
            await self._handle_raw(raw)

    async def _handle_raw(self, raw) -> None:
        """Answer control frames, parse and emit everything else."""
        text = raw.decode() if isinstance(raw, bytes) else raw
        token = text.strip()

        if token == PING:
            await self._ws.send(PONG)
            return
        if token == PONG:
            return
        if not token:
            return

        self._message_count += 1
        try:
            data = orjson.loads(token)
            events = self._parse(data)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            self._parse_error_count += 1
            logger.warning(f"{self._name}: Dropping malformed message: {e} ({token[:120]!r})")
            return

        for event in events:
            self._emit(event)

    def _emit(self, event: Event) -> None:
        """Emit an event."""
        try:
            self.out_queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"{self._name}: Queue full, dropping event")

    async def _heartbeat_loop(self) -> None:
        """Send PING every heartbeat interval while connected."""
        while True:
            await asyncio.sleep(self._heartbeat_interval_s)
            ws = self._ws
            if ws is None:
                return
            try:
                await ws.send(PING)
            except ConnectionClosed:
                return

    async def _stop_heartbeat(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _close_socket(self) -> None:
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await ws.close()
        except Exception as e:
            logger.debug(f"{self._name}: Error closing socket: {e}")
