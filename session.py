"""Per-connection session: room state machine and event handlers.

A session starts Unjoined (`room is None`) and moves to InRoom(code) on
createRoom/joinRoom. Handlers raise ChatError subclasses; `handle_event` is
the single boundary that turns results and errors into acknowledgments.
"""

import random
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from backend import RoomRegistry, normalize_code
from broadcaster import Broadcaster
from constants import AVATAR_COLORS, MAX_MESSAGE_LENGTH
from exceptions import ChatError, EmptyMessage, InternalFault, MissingCode, NotInRoom, RateLimited
from logging_config import get_logger
from rate_limiter import RateLimiter
from schemas.rooms import AckResponse, ChatMessage, RoomUsers

logger = get_logger(__name__)

AckCallback = Callable[[AckResponse], Awaitable[None]]

# Generic failure strings per event, used when an unexpected exception escapes a handler
SERVER_ERRORS = {
    "createRoom": "Server error creating room",
    "joinRoom": "Server error joining room",
    "message": "Server error sending message",
    "leaveRoom": "Server error leaving room",
}


def pick_avatar_color() -> str:
    return random.choice(AVATAR_COLORS)


class Acknowledgment:
    """Wraps an ack callback so that at most one response is ever sent."""

    def __init__(self, callback: AckCallback):
        self.callback = callback
        self.sent = False

    async def __call__(self, response: AckResponse) -> None:
        if self.sent:
            logger.warning(f"Dropping duplicate acknowledgment: {response.to_payload()}")
            return
        self.sent = True
        await self.callback(response)


@dataclass
class ConnectionSession:
    connection_id: str
    registry: RoomRegistry
    rate_limiter: RateLimiter
    broadcaster: Broadcaster
    avatar_color: str = field(default_factory=pick_avatar_color)
    max_message_length: int = MAX_MESSAGE_LENGTH
    room: Optional[str] = None
    closed: bool = False

    async def handle_event(self, event: str, payload: Any, ack: AckCallback) -> None:
        ack = Acknowledgment(ack)
        handler = self._handlers().get(event)
        if handler is None:
            logger.warning(f"Unknown event '{event}' from connection {self.connection_id}")
            await ack(AckResponse(ok=False, error="Unknown event"))
            return
        try:
            await handler(payload, ack)
        except ChatError as e:
            logger.info(f"{event} failed for connection {self.connection_id}: {e}")
            await ack(AckResponse(ok=False, error=str(e)))
        except Exception as e:
            fault = InternalFault(SERVER_ERRORS[event])
            logger.error(f"{fault} for connection {self.connection_id}: {e}", exc_info=True)
            await ack(AckResponse(ok=False, error=str(fault)))

    def _handlers(self):
        return {
            "createRoom": self._on_create_room,
            "joinRoom": self._on_join_room,
            "message": self._on_message,
            "leaveRoom": self._on_leave_room,
        }

    async def _on_create_room(self, payload: Any, ack: Acknowledgment) -> None:
        code = await self.registry.create_room()
        count = await self.registry.join(code, self.connection_id)
        await self._switch_to(code)
        logger.info(f"Connection {self.connection_id} created room {code}")
        await ack(AckResponse(ok=True, room=code, count=count))
        await self._announce_count(code)

    async def _on_join_room(self, payload: Any, ack: Acknowledgment) -> None:
        if payload is None or not str(payload).strip():
            raise MissingCode()
        code = normalize_code(payload)
        if self.room == code:
            await ack(AckResponse(ok=True, room=code, count=self.registry.member_count(code)))
            return

        # Old membership is only released once the new join has succeeded
        await self.registry.ensure_room(code)
        count = await self.registry.join(code, self.connection_id)
        await self._switch_to(code)
        logger.info(f"Connection {self.connection_id} joined room {code} ({count} members)")
        await ack(AckResponse(ok=True, room=code, count=count))
        await self._announce_count(code)
        await self.broadcaster.to_room_including_self(code, "systemMessage", f"{self.connection_id} joined")

    async def _on_message(self, payload: Any, ack: Acknowledgment) -> None:
        code = self.room
        if code is None:
            raise NotInRoom()
        if not self.rate_limiter.try_admit(self.connection_id):
            raise RateLimited()

        text = payload.get("text") if isinstance(payload, dict) else None
        text = str(text)[:self.max_message_length] if text else ""
        if not text.strip():
            raise EmptyMessage()

        msg = ChatMessage(sender=self.connection_id, text=text, ts=int(time.time() * 1000),
                          avatarColor=self.avatar_color)
        delivered = await self.broadcaster.to_room_except_self(
            code, self.connection_id, "message", msg.model_dump(by_alias=True))
        logger.debug(f"Message from {self.connection_id} in room {code} delivered to {delivered} connections")
        await ack(AckResponse(ok=True, msg=msg))

    async def _on_leave_room(self, payload: Any, ack: Acknowledgment) -> None:
        if self.room is None:
            raise NotInRoom()
        await self._leave_current("left")
        await ack(AckResponse(ok=True))

    async def disconnect(self) -> None:
        """Release everything the connection holds. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        try:
            await self._leave_current("disconnected")
        finally:
            self.rate_limiter.release(self.connection_id)
            self.broadcaster.unregister(self.connection_id)
            logger.info(f"Connection {self.connection_id} disconnected")

    async def _switch_to(self, code: str) -> None:
        previous, self.room = self.room, code
        if previous is not None:
            await self._leave_room(previous, "left")

    async def _leave_current(self, verb: str) -> None:
        code = self.room
        if code is None:
            return
        self.room = None
        await self._leave_room(code, verb)

    async def _leave_room(self, code: str, verb: str) -> None:
        count = await self.registry.leave(code, self.connection_id)
        logger.info(f"Connection {self.connection_id} {verb} room {code} ({count} remaining)")
        if count:
            await self._announce_count(code)
            await self.broadcaster.to_room_including_self(code, "systemMessage", f"{self.connection_id} {verb}")

    async def _announce_count(self, code: str) -> None:
        count = self.registry.member_count(code)
        await self.broadcaster.to_room_including_self(code, "roomUsers", RoomUsers(count=count).model_dump())
