"""
Shared fixtures: deterministic gateways and a scripted HTTP transport.
"""

from typing import Dict, List, Tuple, Union

import httpx
import pytest

from prize_art.config import GatewayConfig

Route = Union[Tuple[int, Dict[str, str], bytes], Exception]


class ScriptedTransport(httpx.AsyncBaseTransport):
    """Serves canned responses by URL and records every request made."""

    def __init__(self, routes: Dict[str, Route]):
        self.routes = routes
        self.requested: List[str] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404, content=b"not found", request=request)
        if isinstance(route, Exception):
            raise route
        status, headers, body = route
        return httpx.Response(status, headers=headers, content=body, request=request)


@pytest.fixture
def fake_gateways() -> GatewayConfig:
    return GatewayConfig(
        ipfs=("https://gw1.test/ipfs/", "https://gw2.test/ipfs/", "https://gw3.test/ipfs/"),
        arweave=("https://ar.test/",),
    )


@pytest.fixture
def scripted_client():
    """Factory returning (client, transport) for a route table."""
    def make(routes: Dict[str, Route]):
        transport = ScriptedTransport(routes)
        client = httpx.AsyncClient(transport=transport)
        return client, transport

    return make
