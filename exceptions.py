"""Errors raised by room and session operations.

Each error carries the human-readable string that is sent back to the client
in a failed acknowledgment.
"""

from typing import Optional


class ChatError(Exception):
    """Base exception for recoverable chat errors."""
    message = "Chat error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)


class MissingCode(ChatError):
    message = "Missing code"


class RoomFull(ChatError):
    message = "Room full"


class NotInRoom(ChatError):
    message = "Not in room"


class RateLimited(ChatError):
    message = "Rate limit exceeded"


class EmptyMessage(ChatError):
    message = "Empty message"


class InternalFault(ChatError):
    """Unexpected failure while handling an event."""
    message = "Server error"
