"""Tests for the command-line interface."""

from __future__ import annotations

import httpx
import pytest
from conftest import SSE_HEADERS, ChunkStream, frame
from typer.testing import CliRunner

from opencode_client import cli
from opencode_client.client import OpenCodeClient
from opencode_client.config import ClientOptions

runner = CliRunner()


@pytest.fixture
def serve(monkeypatch):
    """Route CLI HTTP traffic to a mock handler."""

    def install(handler):
        monkeypatch.setattr(cli, "load_options", lambda: ClientOptions())
        monkeypatch.setattr(
            cli,
            "OpenCodeClient",
            lambda options: OpenCodeClient(
                options, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
            ),
        )

    return install


def test_sessions_table(serve):
    serve(lambda request: httpx.Response(200, json=[{"id": "ses_abc", "title": "Refactor", "directory": "/w"}]))
    result = runner.invoke(cli.app, ["sessions"])
    assert result.exit_code == 0
    assert "ses_abc" in result.output
    assert "Refactor" in result.output


def test_sessions_empty(serve):
    serve(lambda request: httpx.Response(200, json=[]))
    result = runner.invoke(cli.app, ["sessions"])
    assert result.exit_code == 0
    assert "No sessions found" in result.output


def test_todos(serve):
    todo = {"id": "t1", "content": "write docs", "status": "pending", "priority": "high"}
    serve(lambda request: httpx.Response(200, json=[todo]))
    result = runner.invoke(cli.app, ["todos", "ses_1"])
    assert result.exit_code == 0
    assert "write docs" in result.output


def test_connection_error_exits_1(serve):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    serve(handler)
    result = runner.invoke(cli.app, ["--url", "http://nowhere:1", "sessions"])
    assert result.exit_code == 1
    assert "Error" in result.output
    assert "http://nowhere:1" in result.output


def test_api_error_exits_1(serve):
    serve(lambda request: httpx.Response(500, text="boom"))
    result = runner.invoke(cli.app, ["todos", "ses_1"])
    assert result.exit_code == 1
    assert "HTTP 500" in result.output


def sse(body: str, **stream_kwargs):
    return lambda request: httpx.Response(
        200, headers=SSE_HEADERS, stream=ChunkStream([body.encode("utf-8")], **stream_kwargs)
    )


def test_events_until_end_of_stream(serve):
    serve(sse(frame("session.status") + frame("todo.updated", directory="/repo")))
    result = runner.invoke(cli.app, ["events"])
    assert result.exit_code == 0
    assert "session.status" in result.output
    assert "todo.updated" in result.output
    assert "/repo" in result.output
    assert "ended after 2 events" in result.output


def test_events_timeout_stops_stream(serve):
    serve(sse(frame("session.status"), hang=True))
    result = runner.invoke(cli.app, ["events", "--timeout", "0.2"])
    assert result.exit_code == 0
    assert "ended after 1 events" in result.output


def test_events_reports_malformed_frames(serve):
    serve(sse("data: notjson\n\n" + frame("session.status")))
    result = runner.invoke(cli.app, ["events"])
    assert result.exit_code == 0
    assert "Skipped malformed event: notjson" in result.output
    assert "ended after 1 events" in result.output


def test_events_api_error_exits_1(serve):
    serve(lambda request: httpx.Response(503, text="overloaded"))
    result = runner.invoke(cli.app, ["events"])
    assert result.exit_code == 1
    assert "HTTP 503" in result.output


class ScriptedPrompt:
    """Stands in for PromptSession, answering with canned input."""

    inputs = ["hello", "todos", "", "exit"]

    def __init__(self, *args, **kwargs):
        self._inputs = iter(self.inputs)

    async def prompt_async(self, message: str) -> str:
        return next(self._inputs)


def test_chat_session(serve, monkeypatch, tmp_path):
    session = {"id": "ses_1", "title": "Chat"}
    reply = {"info": {"id": "msg_1", "sessionID": "ses_1", "role": "assistant"}, "parts": [{"type": "text", "text": "Hi there"}]}
    todo = {"id": "t1", "content": "write docs", "status": "pending", "priority": "high"}
    routes = {
        ("POST", "/session"): httpx.Response(200, json=session),
        ("POST", "/session/ses_1/message"): httpx.Response(200, json=reply),
        ("GET", "/session/ses_1/todo"): httpx.Response(200, json=[todo]),
    }
    serve(lambda request: routes[(request.method, request.url.path)])
    monkeypatch.setattr(cli, "PromptSession", ScriptedPrompt)
    monkeypatch.setattr(cli, "CONFIG_DIR", tmp_path)

    result = runner.invoke(cli.app, ["chat", "--title", "Chat"])
    assert result.exit_code == 0
    assert "Session created: ses_1" in result.output
    assert "Hi there" in result.output
    assert "write docs" in result.output
    assert "Goodbye!" in result.output
