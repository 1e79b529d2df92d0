"""Test configuration and fixtures."""
import asyncio
import itertools
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from transrpc.core.config import Settings
from transrpc.services.session import SESSION_HEADER
from transrpc.services.transmission import Transmission

RPC_PATH = "/transmission/rpc"


async def settle(rounds: int = 20) -> None:
    """Let ready callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class ManualClock:
    """Clock whose time only moves when a test advances it."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleepers: list[tuple[float, asyncio.Future]] = []

    def time(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self.sleepers.append((self.now + delay, future))
        try:
            await future
        finally:
            self.sleepers = [s for s in self.sleepers if s[1] is not future]

    @property
    def pending(self) -> int:
        return sum(1 for _, future in self.sleepers if not future.done())

    async def advance(self, seconds: float) -> None:
        self.now += seconds
        for wake_at, future in list(self.sleepers):
            if wake_at <= self.now and not future.done():
                future.set_result(None)
        await settle()


class FakeFetch:
    """Stand-in for ``torrent-get`` that records the ids of every call."""

    def __init__(self) -> None:
        self.calls: list[list[int]] = []
        self.torrents: dict[int, dict[str, Any]] = {}
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None

    def set_status(self, torrent_id: int, status: int) -> None:
        self.torrents[torrent_id] = {"id": torrent_id, "status": int(status)}

    async def __call__(self, ids: list[int]) -> list[dict[str, Any]]:
        self.calls.append(list(ids))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return [dict(self.torrents[i]) for i in ids if i in self.torrents]


class FakeDaemon:
    """Minimal Transmission RPC endpoint."""

    def __init__(self) -> None:
        self.session_id = "session-1"
        self.requests: list[dict[str, Any]] = []
        self.torrents: dict[int, dict[str, Any]] = {}
        self.replies: dict[str, dict[str, Any]] = {}
        self.error_status: tuple[int, str] | None = None
        self.result = "success"
        self.rotate_session = False
        self.tag_offset = 0
        self.raw_body: str | None = None
        self.url = ""
        self.host = ""
        self.port = 0
        self._session_ids = itertools.count(2)

    @property
    def calls(self) -> list[dict[str, Any]]:
        """Requests that carried the current session id and were answered."""
        return [r for r in self.requests if r["answered"]]

    def methods(self) -> list[str]:
        return [r["body"]["method"] for r in self.calls]

    def add_torrent(self, torrent_id: int, status: int, **fields: Any) -> None:
        self.torrents[torrent_id] = {"id": torrent_id, "status": int(status), **fields}

    def _torrent_get(self, arguments: dict[str, Any]) -> dict[str, Any]:
        ids = arguments.get("ids")
        fields = arguments.get("fields") or []
        torrents = [
            t
            for t in self.torrents.values()
            if ids is None or ids == "recently-active" or t["id"] in ids
        ]
        return {"torrents": [{k: v for k, v in t.items() if k in fields} for t in torrents]}

    async def handle(self, request: web.Request) -> web.Response:
        body = await request.json()
        record = {
            "session_id": request.headers.get(SESSION_HEADER),
            "body": body,
            "answered": False,
        }
        self.requests.append(record)

        if self.rotate_session:
            self.session_id = f"session-{next(self._session_ids)}"
            return web.Response(status=409, headers={SESSION_HEADER: self.session_id})

        if record["session_id"] != self.session_id:
            return web.Response(status=409, headers={SESSION_HEADER: self.session_id})

        if self.error_status is not None:
            status, reason = self.error_status
            return web.Response(status=status, reason=reason)

        record["answered"] = True
        if self.raw_body is not None:
            return web.Response(text=self.raw_body, content_type="application/json")

        method = body["method"]
        arguments = body.get("arguments", {})
        if method == "torrent-get" and method not in self.replies:
            result = self._torrent_get(arguments)
        else:
            result = self.replies.get(method, {})

        payload: dict[str, Any] = {"result": self.result, "arguments": result}
        if "tag" in body:
            payload["tag"] = body["tag"] + self.tag_offset
        return web.json_response(payload)


@pytest.fixture
def clock():
    """Manually advanced clock."""
    return ManualClock()


@pytest.fixture
def fetch():
    """Recording torrent fetcher."""
    return FakeFetch()


@pytest_asyncio.fixture
async def daemon():
    """Fake daemon served over real HTTP."""
    fake = FakeDaemon()
    app = web.Application()
    app.router.add_post(RPC_PATH, fake.handle)

    server = TestServer(app)
    await server.start_server()
    fake.url = str(server.make_url(RPC_PATH))
    fake.host = server.host
    fake.port = server.port

    yield fake

    await server.close()


@pytest_asyncio.fixture
async def client(daemon):
    """Client connected to the fake daemon."""
    bt = Transmission(
        host=daemon.host,
        port=daemon.port,
        path=RPC_PATH,
        config=Settings(),
        poll_interval=0.01,
    )
    yield bt
    await bt.close()
