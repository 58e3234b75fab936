"""In-memory stand-ins for the WebSocket transport and the clock."""

import asyncio
import json

from fastapi import WebSocketDisconnect


class FakeWebSocket:
    """Records every frame sent through it."""

    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(json.loads(text))

    def events(self, name):
        return [frame["data"] for frame in self.sent if frame["event"] == name]


class StalledWebSocket(FakeWebSocket):
    """Never finishes a send."""

    async def send_text(self, text):
        await asyncio.sleep(3600)


class ScriptedWebSocket(FakeWebSocket):
    """Replays inbound frames, then fails the receive with `error`.

    Sends of any event listed in `fail_events` raise, as a dropped transport would.
    """

    def __init__(self, frames, error=None, fail_events=()):
        super().__init__()
        self.frames = [json.dumps(frame) for frame in frames]
        self.error = error or WebSocketDisconnect(code=1000)
        self.fail_events = set(fail_events)

    async def receive_text(self):
        if self.frames:
            return self.frames.pop(0)
        raise self.error

    async def send_text(self, text):
        if json.loads(text)["event"] in self.fail_events:
            raise RuntimeError("connection reset")
        await super().send_text(text)


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms
