"""Shared fixtures: in-memory websockets, a local HTTP server and polling helpers."""

import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer


class FakeWebSocket:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self, url: str):
        self.url = url
        self.sent: list[str] = []
        self.closed = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def send(self, message: str) -> None:
        if self.closed:
            raise OSError("socket closed")
        self.sent.append(message)

    async def recv(self):
        item = await self._incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True

    def push(self, message) -> None:
        """Queue an inbound frame."""
        self._incoming.put_nowait(message)

    def drop(self) -> None:
        """Make the next recv() fail as if the peer went away."""
        self._incoming.put_nowait(OSError("connection lost"))


class FakeConnector:
    """Connector that hands out FakeWebSockets, optionally failing first."""

    def __init__(self, failures: int = 0):
        self.sockets: list[FakeWebSocket] = []
        self.attempts = 0
        self._failures = failures

    async def __call__(self, url: str) -> FakeWebSocket:
        self.attempts += 1
        if self._failures > 0:
            self._failures -= 1
            raise OSError("connection refused")
        ws = FakeWebSocket(url)
        self.sockets.append(ws)
        return ws

    @property
    def last(self) -> FakeWebSocket:
        return self.sockets[-1]


@pytest.fixture
def connector():
    """Connector that always succeeds."""
    return FakeConnector()


@pytest.fixture
def failing_connector():
    """Factory for connectors that fail a number of times first."""
    return FakeConnector


@pytest.fixture
def wait_until():
    """Poll a condition on the event loop until it holds or time runs out."""

    async def _wait(predicate, timeout: float = 2.0, interval: float = 0.005) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if predicate():
                return True
            await asyncio.sleep(interval)
        return predicate()

    return _wait


class FakeHTTPServer:
    """
    Local aiohttp server standing in for the Gamma and crypto-price APIs.

    Each path answers according to its mode:
    - "ok": JSON body from `payloads`
    - "slow": same body after `delay_s`
    - "garbage": non-JSON text labelled as JSON
    """

    def __init__(self, delay_s: float = 0.5):
        self.delay_s = delay_s
        self.modes: dict[str, str] = {}
        self.payloads: dict[str, object] = {}
        self.requests: list[str] = []
        app = web.Application()
        app.router.add_get("/{path:.*}", self._handle)
        self._server = TestServer(app)

    @property
    def url(self) -> str:
        return str(self._server.make_url("/")).rstrip("/")

    async def start(self) -> None:
        await self._server.start_server()

    async def close(self) -> None:
        await self._server.close()

    async def _handle(self, request: web.Request) -> web.Response:
        self.requests.append(request.path)
        mode = self.modes.get(request.path, "ok")
        if mode == "slow":
            await asyncio.sleep(self.delay_s)
        elif mode == "garbage":
            return web.Response(text="<html>502 Bad Gateway</html>", content_type="application/json")
        return web.json_response(self.payloads.get(request.path, []))


@pytest_asyncio.fixture
async def http_server():
    """Started FakeHTTPServer."""
    server = FakeHTTPServer()
    await server.start()
    yield server
    await server.close()
