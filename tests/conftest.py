from __future__ import annotations

from typing import Callable

import httpx
import pytest

from api_client import MakeClient
from config import MakeConfig


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served"""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


@pytest.fixture
def make_client() -> Callable[..., tuple[MakeClient, RecordingTransport]]:
    def _build(
        handler: Callable[[httpx.Request], httpx.Response],
        *,
        api_token: str = "test-token",
        zone: str = "eu1",
    ) -> tuple[MakeClient, RecordingTransport]:
        transport = RecordingTransport(handler)
        client = MakeClient(MakeConfig(api_token=api_token, zone=zone), transport=transport)
        return client, transport

    return _build
