"""Line-oriented framing for the global event stream.

The server pushes frames of the form::

    data: {"directory": "...", "payload": {...}}
    <blank line>

Only the ``data: `` field is used. When several data lines arrive before the
blank line, the last one wins. A ``data: [DONE]`` line ends the stream at once.
Any other line (``event:``, ``id:``, ``: comment``) is ignored.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass

import httpx

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class FrameStep:
    """Result of feeding one line to the assembler.

    Attributes:
        pending: Payload still waiting for its terminating blank line.
        payload: Completed payload, if this line finished a frame.
        done: True if the stream-termination sentinel was seen.
    """

    pending: str | None
    payload: str | None = None
    done: bool = False


def assemble(pending: str | None, line: str) -> FrameStep:
    """Advance the framing state by one line."""
    if line.startswith(DATA_PREFIX):
        data = line[len(DATA_PREFIX) :]
        if data == DONE_SENTINEL:
            return FrameStep(pending=None, done=True)
        return FrameStep(pending=data)

    if not line.strip():
        if pending is None:
            return FrameStep(pending=None)
        return FrameStep(pending=None, payload=pending)

    return FrameStep(pending=pending)


class FrameAssembler:
    """Holds the single in-progress frame of one stream."""

    def __init__(self) -> None:
        self._pending: str | None = None
        self._done = False

    @property
    def pending(self) -> str | None:
        return self._pending

    @property
    def done(self) -> bool:
        return self._done

    def feed(self, line: str) -> FrameStep:
        if self._done:
            return FrameStep(pending=None, done=True)
        step = assemble(self._pending, line)
        self._pending = step.pending
        self._done = step.done
        return step


async def read_lines(response: httpx.Response) -> AsyncIterator[str]:
    """Yield decoded lines of a streaming response, newline stripped.

    Transport errors raised by httpx propagate unchanged.
    """
    async for line in response.aiter_lines():
        yield line.rstrip("\r\n")


async def iter_payloads(lines: AsyncIterable[str]) -> AsyncIterator[str]:
    """Yield completed payloads from an async line source."""
    assembler = FrameAssembler()
    async for line in lines:
        step = assembler.feed(line)
        if step.done:
            return
        if step.payload is not None:
            yield step.payload
