"""Global event stream for OpenCode.

Consumes the server's ``/global/event`` push stream and yields typed
``GlobalEvent`` objects, one per completed frame.

Example:
    async with EventStream(ClientOptions(base_url="http://localhost:4096")) as stream:
        async for event in stream:
            print(event.directory, event.type)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

import httpx
from pydantic import ValidationError

from .config import ClientOptions
from .exceptions import ApiError, ConnectionError, ConnectionErrorKind
from .models import GlobalEvent
from .sse import iter_payloads, read_lines

logger = logging.getLogger(__name__)

GLOBAL_EVENT_PATH = "/global/event"
MAX_ERROR_BODY_BYTES = 64 * 1024

T = TypeVar("T")


@dataclass(frozen=True)
class DecodeFailure:
    """A frame whose payload could not be decoded."""

    payload: str
    error: Exception


DecodeErrorSink = Callable[[DecodeFailure], None]


def log_decode_failure(failure: DecodeFailure) -> None:
    logger.warning(f"Dropping malformed event ({len(failure.payload)} chars): {failure.error}")


class EventDecoder:
    """Turns payload strings into ``GlobalEvent`` objects.

    Malformed payloads are reported to ``on_error`` and dropped.
    """

    def __init__(self, on_error: DecodeErrorSink | None = None):
        self._on_error = on_error or log_decode_failure
        self.dropped = 0

    def decode(self, payload: str) -> GlobalEvent | None:
        try:
            return GlobalEvent.model_validate_json(payload)
        except ValidationError as e:
            self.dropped += 1
            self._on_error(DecodeFailure(payload=payload, error=e))
            return None


class StreamState(str, Enum):
    """Lifecycle of an event stream."""

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    STOPPED = "stopped"
    FAILED = "failed"
    COMPLETED = "completed"


TERMINAL_STATES = frozenset({StreamState.STOPPED, StreamState.FAILED, StreamState.COMPLETED})


async def _next_payload(payloads: AsyncIterator[str]) -> str | None:
    try:
        return await payloads.__anext__()
    except StopAsyncIteration:
        return None


async def _read_error_body(response: httpx.Response, limit: int = MAX_ERROR_BODY_BYTES) -> str:
    """Read at most ``limit`` bytes of an error body.

    A transport failure part way through keeps whatever was already read.
    """
    body = bytearray()
    try:
        async for chunk in response.aiter_bytes():
            body.extend(chunk)
            if len(body) >= limit:
                break
    except (httpx.TransportError, httpx.StreamError) as e:
        logger.debug(f"Error body cut short after {len(body)} bytes: {e}")
    return bytes(body[:limit]).decode("utf-8", errors="replace")


class EventStream:
    """One connection to the server's global event stream.

    A stream is consumed once, by a single consumer. Create a new
    ``EventStream`` to reconnect.

    The sequence ends without error on ``stop()``, on the external ``cancel``
    event, on ``[DONE]`` or at end of stream. It raises ``ConnectionError``
    or ``ApiError`` when the connection fails.
    """

    def __init__(
        self,
        options: ClientOptions | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        on_decode_error: DecodeErrorSink | None = None,
    ):
        """Initialize the event stream.

        Args:
            options: Client options; only ``base_url`` and ``timeout`` are used.
            http_client: Optional client to reuse. It is not closed by the stream.
            on_decode_error: Receives frames that fail to decode.
        """
        self._options = (options or ClientOptions()).validate()
        self._client = http_client
        self._owns_client = http_client is None
        self._decoder = EventDecoder(on_decode_error)
        self._state = StreamState.IDLE
        self._stop = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._response: httpx.Response | None = None
        self._closed = False

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def base_url(self) -> str:
        return self._options.base_url.rstrip("/")

    @property
    def dropped_events(self) -> int:
        """Number of frames dropped because they failed to decode."""
        return self._decoder.dropped

    def _set_state(self, state: StreamState) -> None:
        logger.debug(f"Event stream {self._state.value} -> {state.value}")
        self._state = state

    @property
    def _stream_timeout(self) -> httpx.Timeout:
        # bound the connect phase only; the stream itself is long-lived
        return httpx.Timeout(None, connect=self._options.timeout)

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._stream_timeout)
        return self._client

    def _cancel_requested(self, cancel: asyncio.Event | None) -> bool:
        return self._stop.is_set() or (cancel is not None and cancel.is_set())

    async def _race(self, awaitable: Awaitable[T], cancel: asyncio.Event | None) -> tuple[bool, T | None]:
        """Await ``awaitable`` unless cancellation wins first.

        Returns:
            ``(True, result)`` if the awaitable finished, ``(False, None)`` if cancelled.
        """
        if self._cancel_requested(cancel):
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            return False, None

        work: asyncio.Future[Any] = asyncio.ensure_future(awaitable)
        waiters = [asyncio.ensure_future(self._stop.wait())]
        if cancel is not None:
            waiters.append(asyncio.ensure_future(cancel.wait()))
        try:
            done, _ = await asyncio.wait({work, *waiters}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()
            if not work.done():
                work.cancel()
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await work

        if work in done:
            return True, work.result()
        return False, None

    async def _open(self, cancel: asyncio.Event | None) -> httpx.Response | None:
        client = self._ensure_client()
        request = client.build_request(
            "GET",
            f"{self.base_url}{GLOBAL_EVENT_PATH}",
            headers={"Accept": "text/event-stream"},
            timeout=self._stream_timeout,
        )
        try:
            completed, response = await self._race(client.send(request, stream=True), cancel)
        except httpx.TimeoutException as e:
            raise ConnectionError(
                f"Connection to OpenCode server timed out: {e}",
                kind=ConnectionErrorKind.TIMEOUT,
            ) from e
        except httpx.TransportError as e:
            raise ConnectionError(
                f"Failed to connect to OpenCode server at {self.base_url}: {e}",
                kind=ConnectionErrorKind.FAILED,
            ) from e
        if not completed or response is None:
            return None

        if not response.is_success:
            try:
                completed, body = await self._race(_read_error_body(response), cancel)
            finally:
                await response.aclose()
            if not completed:
                return None
            raise ApiError(
                f"Failed to connect to event stream: HTTP {response.status_code}",
                status_code=response.status_code,
                body=body,
            )
        return response

    async def stream_global_events(self, cancel: asyncio.Event | None = None) -> AsyncIterator[GlobalEvent]:
        """Stream global events from the server.

        Args:
            cancel: Optional external event; setting it ends the sequence.

        Yields:
            GlobalEvent objects in wire order.

        Raises:
            ConnectionError: If the connection fails, times out or is lost.
            ApiError: If the server rejects the stream request.
            RuntimeError: If the stream was closed or already consumed.
        """
        if self._closed:
            raise RuntimeError("Event stream is closed")
        if self._state is not StreamState.IDLE:
            raise RuntimeError(f"Event stream already consumed (state: {self._state.value})")

        self._loop = asyncio.get_running_loop()
        self._set_state(StreamState.CONNECTING)
        try:
            response = await self._open(cancel)
        except (ConnectionError, ApiError):
            self._set_state(StreamState.FAILED)
            raise
        except BaseException:
            self._set_state(StreamState.STOPPED)
            raise
        if response is None:
            self._set_state(StreamState.STOPPED)
            return

        self._response = response
        self._set_state(StreamState.STREAMING)
        logger.info(f"Connected to event stream at {self.base_url}{GLOBAL_EVENT_PATH}")

        lines = read_lines(response)
        payloads = iter_payloads(lines)
        try:
            while True:
                completed, payload = await self._race(_next_payload(payloads), cancel)
                # a read that finished alongside stop() must not yield
                if not completed or self._cancel_requested(cancel):
                    self._set_state(StreamState.STOPPED)
                    return
                if payload is None:
                    self._set_state(StreamState.COMPLETED)
                    return

                event = self._decoder.decode(payload)
                if event is not None:
                    yield event
        except (httpx.TransportError, httpx.StreamError) as e:
            if self._cancel_requested(cancel):
                self._set_state(StreamState.STOPPED)
                return
            self._set_state(StreamState.FAILED)
            raise ConnectionError(
                f"Connection to OpenCode server lost: {e}",
                kind=ConnectionErrorKind.LOST,
            ) from e
        except BaseException:
            # consumer left the loop, or the consuming task was cancelled
            if self._state not in TERMINAL_STATES:
                self._set_state(StreamState.STOPPED)
            raise
        finally:
            self._response = None
            await payloads.aclose()
            await lines.aclose()
            await response.aclose()
            logger.info(f"Event stream finished: {self._state.value}")

    def __aiter__(self) -> AsyncIterator[GlobalEvent]:
        return self.stream_global_events()

    def stop(self) -> None:
        """Request the sequence to end. Safe from any task or thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            self._stop.set()
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._stop.set()
        else:
            loop.call_soon_threadsafe(self._stop.set)

    async def aclose(self) -> None:
        """Stop streaming and release the connection. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self.stop()
        response = self._response
        if response is not None:
            await response.aclose()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> EventStream:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
