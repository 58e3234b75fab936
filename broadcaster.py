import asyncio
import json
from typing import Any, Dict, Iterable

from fastapi import WebSocket

from backend import RoomRegistry
from constants import SEND_TIMEOUT_SECONDS
from logging_config import get_logger

logger = get_logger(__name__)


def encode_event(event: str, payload: Any) -> str:
    return json.dumps({"event": event, "data": payload})


class Broadcaster:
    """Delivers named events to connections and to room members.

    Tracks the live transport of every connection ({connection_id: websocket}).
    Room membership always comes from the registry at send time.
    """

    def __init__(self, registry: RoomRegistry, send_timeout: float = SEND_TIMEOUT_SECONDS):
        self.registry = registry
        self.send_timeout = send_timeout
        self.connections: Dict[str, WebSocket] = {}

    def register(self, connection_id: str, websocket: WebSocket) -> None:
        self.connections[connection_id] = websocket
        logger.debug(f"Registered transport for connection {connection_id} ({len(self.connections)} live)")

    def unregister(self, connection_id: str) -> None:
        self.connections.pop(connection_id, None)
        logger.debug(f"Unregistered transport for connection {connection_id}")

    async def emit_to(self, connection_id: str, event: str, payload: Any) -> bool:
        """Send one event to a single connection. Returns False if delivery failed."""
        ws = self.connections.get(connection_id)
        if ws is None:
            logger.debug(f"No transport for connection {connection_id}, dropping {event}")
            return False
        try:
            # A stalled recipient must not hold up the sender's handler
            await asyncio.wait_for(ws.send_text(encode_event(event, payload)), self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Timed out sending {event} to connection {connection_id} after {self.send_timeout}s")
            return False
        except Exception as e:
            logger.warning(f"Error sending {event} to connection {connection_id}: {e}")
            return False

    async def to_room_except_self(self, code: str, sender_id: str, event: str, payload: Any) -> int:
        recipients = [conn_id for conn_id in self.registry.members(code) if conn_id != sender_id]
        return await self._fan_out(code, recipients, event, payload)

    async def to_room_including_self(self, code: str, event: str, payload: Any) -> int:
        return await self._fan_out(code, self.registry.members(code), event, payload)

    async def _fan_out(self, code: str, recipients: Iterable[str], event: str, payload: Any) -> int:
        recipients = list(recipients)
        if not recipients:
            return 0
        logger.debug(f"Broadcasting {event} to {len(recipients)} connections in room {code}")
        # Send to all recipients concurrently; one failure must not stop the rest
        results = await asyncio.gather(
            *(self.emit_to(conn_id, event, payload) for conn_id in recipients),
            return_exceptions=True,
        )
        delivered = sum(1 for result in results if result is True)
        if delivered < len(recipients):
            logger.warning(f"Delivered {event} to {delivered}/{len(recipients)} connections in room {code}")
        return delivered
