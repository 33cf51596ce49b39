import asyncio
import hashlib
import json
from collections import Counter

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from manifest_sync.net.fetch_pool import AsyncFetchPool


def sha1(payload: bytes) -> str:
    return hashlib.sha1(payload).hexdigest()


def file_entry(payload_url: str, payload: bytes) -> dict:
    return {
        "type": "file",
        "downloads": {"raw": {"sha1": sha1(payload), "url": payload_url}},
    }


class ManifestServer:
    """
    A local HTTP server serving fixed bodies and recording every request.
    """

    def __init__(self):
        self.routes: dict[str, bytes | int] = {}
        self.hits: Counter[str] = Counter()
        self.user_agents: list[str] = []
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        app = web.Application()
        app.router.add_get("/{path:.*}", self._handle)
        self.server = TestServer(app)

    async def _handle(self, request: web.Request) -> web.Response:
        path = "/" + request.match_info["path"]
        self.hits[path] += 1
        self.user_agents.append(request.headers.get("User-Agent", ""))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        body = self.routes.get(path)
        if body is None:
            return web.Response(status=404)
        if isinstance(body, int):
            return web.Response(status=body)
        return web.Response(body=body)

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))

    def add(self, path: str, body: bytes | dict | int) -> str:
        """Serves `body` at `path` and returns its absolute URL."""
        if isinstance(body, dict):
            body = json.dumps(body).encode("utf-8")
        self.routes[path] = body
        return self.url(path)

    @property
    def total_hits(self) -> int:
        return sum(self.hits.values())


@pytest.fixture
async def manifest_server():
    server = ManifestServer()
    await server.server.start_server()
    yield server
    await server.server.close()


@pytest.fixture
async def pool():
    fetch_pool = AsyncFetchPool(
        identity="manifest-sync-tests", max_workers=4, request_timeout=10, drain_timeout=5
    )
    yield fetch_pool
    await fetch_pool.close()
