"""OpenCode Client SDK.

Async client for an OpenCode server: session management over the REST API
and a cancellable stream of server-pushed events.

Example usage:
    async with OpenCodeClient(ClientOptions(base_url="http://localhost:4096")) as client:
        session = await client.create_session(title="demo")
        await client.send_prompt_async(session.id, "Help me refactor this")

        async with client.create_event_stream() as stream:
            async for event in stream:
                print(event.directory, event.type)
"""

from __future__ import annotations

from ._version import __version__
from .client import OpenCodeClient
from .config import ClientOptions, load_options
from .events import DecodeFailure, EventDecoder, EventStream, StreamState
from .exceptions import (
    ApiError,
    ConnectionError,
    ConnectionErrorKind,
    OpenCodeClientError,
    StreamError,
)
from .models import (
    FileEditedEvent,
    GlobalEvent,
    MessageInfo,
    MessagePart,
    MessageUpdatedEvent,
    MessageWithParts,
    OpenCodeEvent,
    PromptResponse,
    Session,
    SessionStatusEvent,
    Todo,
    TodoUpdatedEvent,
)
from .sse import FrameAssembler

__all__ = [
    "__version__",
    # Clients
    "OpenCodeClient",
    "EventStream",
    "StreamState",
    # Config
    "ClientOptions",
    "load_options",
    # Stream internals
    "EventDecoder",
    "DecodeFailure",
    "FrameAssembler",
    # Models
    "GlobalEvent",
    "OpenCodeEvent",
    "SessionStatusEvent",
    "MessageUpdatedEvent",
    "TodoUpdatedEvent",
    "FileEditedEvent",
    "Session",
    "MessageInfo",
    "MessagePart",
    "MessageWithParts",
    "PromptResponse",
    "Todo",
    # Exceptions
    "OpenCodeClientError",
    "ConnectionError",
    "ConnectionErrorKind",
    "ApiError",
    "StreamError",
]
