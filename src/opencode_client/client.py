"""HTTP REST client for OpenCode.

Provides one-shot request/response wrappers over the OpenCode server API.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter

from .config import ClientOptions
from .events import DecodeErrorSink, EventStream
from .exceptions import ApiError, ConnectionError, ConnectionErrorKind, OpenCodeClientError
from .models import (
    AppendPromptRequest,
    CreateSessionRequest,
    ExecuteCommandRequest,
    MessagePart,
    MessageWithParts,
    ModelConfig,
    PromptRequest,
    PromptResponse,
    Session,
    ShowToastRequest,
    Todo,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SESSIONS = TypeAdapter(list[Session])
_MESSAGES = TypeAdapter(list[MessageWithParts])
_TODOS = TypeAdapter(list[Todo])


class OpenCodeClient:
    """HTTP REST client for an OpenCode server.

    Uses httpx for async HTTP requests.

    Example:
        async with OpenCodeClient(ClientOptions(base_url="http://localhost:4096")) as client:
            session = await client.create_session(title="demo")
            reply = await client.send_prompt(session.id, "Hello")
            print(reply.text)
    """

    def __init__(
        self,
        options: ClientOptions | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the client.

        Args:
            options: Client options. Defaults to ``ClientOptions()``.
            http_client: Optional client to reuse. It is not closed by ``close()``.
        """
        self._options = (options or ClientOptions()).validate()
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def options(self) -> ClientOptions:
        return self._options

    @property
    def base_url(self) -> str:
        return self._options.base_url.rstrip("/")

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._options.timeout))
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client if this object created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> OpenCodeClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json_data: BaseModel | dict | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Make an HTTP request.

        Args:
            method: HTTP method.
            endpoint: API path, starting with ``/``.
            json_data: Optional JSON body.
            params: Optional query parameters; ``None`` values are dropped.

        Returns:
            The successful response.

        Raises:
            ConnectionError: If the server is unreachable or times out.
            ApiError: If the server returns a non-success status.
        """
        client = self._ensure_client()
        url = f"{self.base_url}{endpoint}"
        body = json_data.to_wire() if hasattr(json_data, "to_wire") else json_data
        query = {k: v for k, v in (params or {}).items() if v is not None}

        try:
            response = await client.request(method, url, json=body, params=query or None)
        except httpx.TimeoutException as e:
            raise ConnectionError(
                f"Request to {url} timed out after {self._options.timeout}s",
                kind=ConnectionErrorKind.TIMEOUT,
                details={"timeout": self._options.timeout},
            ) from e
        except httpx.TransportError as e:
            raise ConnectionError(f"Failed to connect to OpenCode server at {self.base_url}: {e}") from e

        if not response.is_success:
            raise ApiError(
                f"{method} {endpoint} failed: HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    async def _call(
        self,
        method: str,
        endpoint: str,
        parse: TypeAdapter[T] | type[T] | None = None,
        *,
        default: Any = None,
        **kwargs: Any,
    ) -> Any:
        """Issue a request and decode the JSON response.

        When ``throw_on_error`` is off, failures are logged and ``default`` is returned.
        """
        try:
            response = await self._request(method, endpoint, **kwargs)
            if parse is None:
                return response.json() if response.content else None
            if isinstance(parse, TypeAdapter):
                return parse.validate_json(response.content)
            return parse.model_validate_json(response.content)  # type: ignore[attr-defined]
        except ValueError as e:
            error: OpenCodeClientError = ApiError(
                f"Unexpected response from {method} {endpoint}: {e}",
                body=str(e),
            )
            if self._options.throw_on_error:
                raise error from e
        except OpenCodeClientError as e:
            error = e
            if self._options.throw_on_error:
                raise
        logger.warning(f"{method} {endpoint} failed: {error.message}")
        return default

    async def _call_bool(self, method: str, endpoint: str, **kwargs: Any) -> bool:
        result = await self._call(method, endpoint, default=False, **kwargs)
        if result is None:
            return True
        return bool(result)

    def _prompt_request(self, prompt: str, provider_id: str | None, model_id: str | None) -> PromptRequest:
        return PromptRequest(
            parts=[MessagePart(type="text", text=prompt)],
            model=ModelConfig(
                provider_id=provider_id or self._options.default_provider_id,
                model_id=model_id or self._options.default_model_id,
            ),
        )

    # =========================================================================
    # Sessions
    # =========================================================================

    async def list_sessions(self, directory: str | None = None) -> list[Session] | None:
        return await self._call("GET", "/session", _SESSIONS, params={"directory": directory})

    async def create_session(
        self,
        title: str | None = None,
        parent_id: str | None = None,
        directory: str | None = None,
    ) -> Session | None:
        """Create a new session.

        Args:
            title: Optional session title.
            parent_id: Optional parent session to branch from.
            directory: Working directory the session belongs to.

        Returns:
            The created session.
        """
        request = CreateSessionRequest(title=title, parent_id=parent_id)
        return await self._call(
            "POST",
            "/session",
            Session,
            json_data=request,
            params={"directory": directory},
        )

    async def get_session(self, session_id: str, directory: str | None = None) -> Session | None:
        return await self._call("GET", f"/session/{session_id}", Session, params={"directory": directory})

    async def delete_session(self, session_id: str, directory: str | None = None) -> bool:
        return await self._call_bool("DELETE", f"/session/{session_id}", params={"directory": directory})

    async def abort_session(self, session_id: str, directory: str | None = None) -> bool:
        """Abort whatever the session is currently doing."""
        return await self._call_bool("POST", f"/session/{session_id}/abort", params={"directory": directory})

    # =========================================================================
    # Prompts & Messages
    # =========================================================================

    async def send_prompt(
        self,
        session_id: str,
        prompt: str,
        provider_id: str | None = None,
        model_id: str | None = None,
        directory: str | None = None,
    ) -> PromptResponse | None:
        """Send a prompt and wait for the assistant's reply.

        Args:
            session_id: The session ID.
            prompt: Prompt text.
            provider_id: Provider to use. Defaults to ``options.default_provider_id``.
            model_id: Model to use. Defaults to ``options.default_model_id``.
            directory: Working directory the session belongs to.

        Returns:
            The assistant's reply.
        """
        return await self._call(
            "POST",
            f"/session/{session_id}/message",
            PromptResponse,
            json_data=self._prompt_request(prompt, provider_id, model_id),
            params={"directory": directory},
        )

    async def send_prompt_async(
        self,
        session_id: str,
        prompt: str,
        provider_id: str | None = None,
        model_id: str | None = None,
        directory: str | None = None,
    ) -> None:
        """Send a prompt without waiting for the reply.

        Progress is observable on the event stream.
        """
        await self._call(
            "POST",
            f"/session/{session_id}/prompt_async",
            json_data=self._prompt_request(prompt, provider_id, model_id),
            params={"directory": directory},
        )

    async def get_messages(
        self,
        session_id: str,
        limit: int | None = None,
        directory: str | None = None,
    ) -> list[MessageWithParts] | None:
        return await self._call(
            "GET",
            f"/session/{session_id}/message",
            _MESSAGES,
            params={"limit": limit, "directory": directory},
        )

    async def get_todos(self, session_id: str, directory: str | None = None) -> list[Todo] | None:
        return await self._call("GET", f"/session/{session_id}/todo", _TODOS, params={"directory": directory})

    # =========================================================================
    # TUI remote control
    # =========================================================================

    async def tui_append_prompt(self, text: str) -> bool:
        return await self._call_bool("POST", "/tui/append-prompt", json_data=AppendPromptRequest(text=text))

    async def tui_submit_prompt(self) -> bool:
        return await self._call_bool("POST", "/tui/submit-prompt")

    async def tui_clear_prompt(self) -> bool:
        return await self._call_bool("POST", "/tui/clear-prompt")

    async def tui_execute_command(self, command: str) -> bool:
        return await self._call_bool(
            "POST",
            "/tui/execute-command",
            json_data=ExecuteCommandRequest(command=command),
        )

    async def tui_show_toast(self, message: str, type: str = "info") -> bool:
        return await self._call_bool(
            "POST",
            "/tui/show-toast",
            json_data=ShowToastRequest(message=message, type=type),
        )

    # =========================================================================
    # Events
    # =========================================================================

    def create_event_stream(self, on_decode_error: DecodeErrorSink | None = None) -> EventStream:
        """Create a new event stream against the same server.

        The stream shares this client's connection pool, so close the stream
        (``aclose()``) before closing the client.
        """
        return EventStream(self._options, http_client=self._ensure_client(), on_decode_error=on_decode_error)
