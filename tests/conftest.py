from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable

import httpx
import pytest

from opencode_client.client import OpenCodeClient
from opencode_client.config import ClientOptions
from opencode_client.events import EventStream

BASE_URL = "http://opencode.test"
SSE_HEADERS = {"content-type": "text/event-stream; charset=utf-8"}


class ChunkStream(httpx.AsyncByteStream):
    """Response body that yields the given fragments, then ends, fails or hangs."""

    def __init__(self, chunks: list[bytes], *, error: Exception | None = None, hang: bool = False):
        self.chunks = chunks
        self.error = error
        self.hang = hang
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error
        if self.hang:
            await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


def frame(event_type: str = "session.status", directory: str = "/p", data: object = None) -> str:
    payload = {"directory": directory, "payload": {"type": event_type, "data": data if data is not None else {}}}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


@pytest.fixture
def options():
    return ClientOptions(base_url=BASE_URL, timeout=5.0)


@pytest.fixture
def make_event_stream(options) -> Callable[..., EventStream]:
    """Build an EventStream whose HTTP traffic goes to ``handler``."""

    def factory(handler, **kwargs) -> EventStream:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return EventStream(options, http_client=http_client, **kwargs)

    return factory


@pytest.fixture
def make_client(options) -> Callable[..., OpenCodeClient]:
    """Build an OpenCodeClient whose HTTP traffic goes to ``handler``."""

    def factory(handler, **overrides) -> OpenCodeClient:
        opts = ClientOptions(**{**options.__dict__, **overrides})
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return OpenCodeClient(opts, http_client=http_client)

    return factory
