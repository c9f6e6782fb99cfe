import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from report_engine import load_config


class FakeWirespeed:
    """httpx.MockTransport handler serving canned JSON by (method, path).

    A route value may be a JSON-able payload, an `httpx.Response`, or a
    callable `(token, body) -> payload | Response`. Unrouted calls get `{}`.
    Every call is recorded as `(method, path, token, body)`.
    """

    def __init__(self, routes: Optional[Dict[Tuple[str, str], Any]] = None):
        self.routes = dict(routes or {})
        self.calls: List[Tuple[str, str, str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        self.calls.append((request.method, request.url.path, token, body))

        route = self.routes.get((request.method, request.url.path))
        if callable(route):
            route = route(token, body)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json={} if route is None else route)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def paths(self) -> List[str]:
        return [path for _, path, _, _ in self.calls]


@pytest.fixture
def cfg(tmp_path):
    return load_config(str(tmp_path / "absent.toml"))


@pytest.fixture
def fake():
    return FakeWirespeed()


class HoldUntilAll:
    """Async handler that holds `gated` requests until `expected` of them are in flight.

    Requests that arrive one at a time never release the hold and time out.
    """

    def __init__(self, fake: FakeWirespeed, expected: int, gated=lambda path: True, timeout: float = 2.0):
        self.fake = fake
        self.expected = expected
        self.gated = gated
        self.timeout = timeout
        self.in_flight = 0
        self.peak = 0
        self.released = asyncio.Event()

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        if not self.gated(request.url.path):
            return self.fake(request)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        if self.in_flight >= self.expected:
            self.released.set()
        try:
            await asyncio.wait_for(self.released.wait(), self.timeout)
        finally:
            self.in_flight -= 1
        return self.fake(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def hold_until_all(fake):
    def make(expected: int, gated=lambda path: True) -> HoldUntilAll:
        return HoldUntilAll(fake, expected, gated)
    return make
