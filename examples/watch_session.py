"""Create a session, send a prompt and watch its events until it goes idle.

Usage:
    python examples/watch_session.py "Summarize this repository" [--url http://localhost:4096]
"""

from __future__ import annotations

import asyncio

import typer

from opencode_client import ClientOptions, EventStream, OpenCodeClient, SessionStatusEvent, StreamState


async def watch(stream: EventStream, session_id: str) -> None:
    async for event in stream:
        print(f"{event.type:<24} {event.directory}")
        status = event.payload.parse_data()
        if isinstance(status, SessionStatusEvent) and status.session_id == session_id and status.status == "idle":
            return


async def main(prompt: str, url: str) -> None:
    async with OpenCodeClient(ClientOptions(base_url=url)) as client:
        session = await client.create_session(title="watch_session example")
        print(f"session {session.id}")

        async with client.create_event_stream() as stream:
            watcher = asyncio.create_task(watch(stream, session.id))
            # events are only seen once connected, so wait before prompting
            while stream.state in (StreamState.IDLE, StreamState.CONNECTING) and not watcher.done():
                await asyncio.sleep(0.05)
            if stream.state is StreamState.STREAMING:
                await client.send_prompt_async(session.id, prompt)
            await watcher

        for message in await client.get_messages(session.id) or []:
            text = "".join(p.text or "" for p in message.parts if p.type == "text")
            print(f"[{message.info.role}] {text}")


def run(
    prompt: str,
    url: str = typer.Option("http://localhost:4096", "--url", help="OpenCode server URL"),
) -> None:
    asyncio.run(main(prompt, url))


if __name__ == "__main__":
    typer.run(run)
