"""Shared fixtures: fake transports and a fresh relay stack per test."""

import pytest

from backend import RoomRegistry
from broadcaster import Broadcaster
from rate_limiter import RateLimiter
from session import ConnectionSession
from tests.fakes import FakeClock, FakeWebSocket


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def rate_limiter(clock):
    return RateLimiter(clock=clock)


@pytest.fixture
def broadcaster(registry):
    return Broadcaster(registry)


@pytest.fixture
def connect(registry, rate_limiter, broadcaster):
    """Factory returning (session, websocket, acks) for a new connection."""

    def _connect(connection_id, websocket=None):
        websocket = websocket or FakeWebSocket()
        broadcaster.register(connection_id, websocket)
        session = ConnectionSession(
            connection_id=connection_id,
            registry=registry,
            rate_limiter=rate_limiter,
            broadcaster=broadcaster,
            avatar_color="#2196f3",
        )
        acks = []

        async def ack(response):
            acks.append(response.to_payload())

        session.ack = ack
        session.acks = acks
        return session, websocket

    return _connect
