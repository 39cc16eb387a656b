"""Pytest configuration and fixtures for rest-fixture-client tests.

This file provides:
- RecordingExchange: an Exchange that counts release() calls
- make_client: an httpx.Client backed by httpx.MockTransport
- Fixtures: recording exchange factories and a valid request
"""

from __future__ import annotations

from typing import Callable

import httpx
import pytest

from rest_client.exchange import Exchange
from rest_client.executor import RequestExecutor
from rest_client.models import HttpMethod, RestRequest

Handler = Callable[[httpx.Request], httpx.Response]


class RecordingExchange(Exchange):
    """Exchange that records how many times it was released."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.release_count = 0

    def release(self) -> None:
        self.release_count += 1
        super().release()

    def verify_connection_released(self) -> None:
        assert self.release_count == 1, f"released {self.release_count} times"


def make_client(handler: Handler, **kwargs) -> httpx.Client:
    """Create an httpx.Client whose requests are answered by handler."""
    return httpx.Client(transport=httpx.MockTransport(handler), **kwargs)


def always_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, headers={"X-Served-By": "mock"}, text="ok")


def always_io_failure(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def always_protocol_failure(request: httpx.Request) -> httpx.Response:
    raise httpx.RemoteProtocolError("malformed status line", request=request)


@pytest.fixture
def created_exchanges() -> list[RecordingExchange]:
    """Every exchange built by recording_factories, in creation order."""
    return []


@pytest.fixture
def recording_factories(
    created_exchanges: list[RecordingExchange],
) -> dict[HttpMethod, Callable[[], Exchange]]:
    def factory_for(name: str) -> Callable[[], Exchange]:
        def build() -> Exchange:
            exchange = RecordingExchange(name)
            created_exchanges.append(exchange)
            return exchange

        return build

    return {method: factory_for(method.value) for method in HttpMethod}


@pytest.fixture
def make_executor(
    recording_factories: dict[HttpMethod, Callable[[], Exchange]],
) -> Callable[..., RequestExecutor]:
    """Build an executor on a mock transport that records its exchanges."""

    def build(handler: Handler = always_ok, base_url: str | None = "http://alwaysok:8080") -> RequestExecutor:
        return RequestExecutor(
            make_client(handler), base_url, exchange_factories=recording_factories
        )

    return build


@pytest.fixture
def valid_request() -> RestRequest:
    return RestRequest(
        method=HttpMethod.GET,
        resource="/a/resource",
        query="aQuery",
        headers=(("a", "v"),),
    )
