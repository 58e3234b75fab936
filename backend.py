import asyncio
import random
import string
from typing import Callable, Dict, FrozenSet, Optional, Set

from constants import ROOM_CAPACITY, ROOM_CODE_LENGTH
from exceptions import RoomFull
from logging_config import get_logger

logger = get_logger(__name__)

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_CODE_ATTEMPTS = 1000


def generate_room_code(length: int = ROOM_CODE_LENGTH) -> str:
    """Random uppercase alphanumeric code. Uniqueness is up to the caller."""
    return ''.join(random.choices(ROOM_CODE_ALPHABET, k=length))


def normalize_code(code) -> str:
    return str(code).strip().upper()


class RoomRegistry:
    """In-memory mapping of room code -> set of member connection IDs.

    Mutations are serialized with a single asyncio.Lock so a read-modify-write
    (e.g. the capacity check in join) can't interleave with another
    connection's handler. Rooms are deleted as soon as they become empty.
    """

    def __init__(self, capacity: int = ROOM_CAPACITY, code_generator: Optional[Callable[[], str]] = None):
        self.capacity = capacity
        self.code_generator = code_generator or generate_room_code
        self._rooms: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()
        logger.info(f"Initializing RoomRegistry with capacity {capacity}")

    async def create_room(self) -> str:
        """Register an empty room under a fresh code and return the code."""
        async with self._lock:
            for _ in range(MAX_CODE_ATTEMPTS):
                code = normalize_code(self.code_generator())
                if code not in self._rooms:
                    self._rooms[code] = set()
                    logger.info(f"Room {code} created")
                    return code
                logger.debug(f"Room code collision on {code}, retrying")
        raise RuntimeError(f"Could not find a free room code after {MAX_CODE_ATTEMPTS} attempts")

    async def ensure_room(self, code: str) -> str:
        code = normalize_code(code)
        async with self._lock:
            if code not in self._rooms:
                self._rooms[code] = set()
                logger.info(f"Room {code} created on first join")
        return code

    async def join(self, code: str, connection_id: str) -> int:
        """Add a connection to a room and return the new member count.

        Raises RoomFull if the room is already at capacity; membership is left
        untouched in that case.
        """
        code = normalize_code(code)
        async with self._lock:
            members = self._rooms.setdefault(code, set())
            if connection_id in members:
                return len(members)
            if len(members) >= self.capacity:
                logger.warning(f"Join rejected: room {code} is full ({len(members)}/{self.capacity})")
                raise RoomFull()
            members.add(connection_id)
            logger.debug(f"Connection {connection_id} joined room {code} ({len(members)}/{self.capacity})")
            return len(members)

    async def leave(self, code: str, connection_id: str) -> int:
        """Remove a connection from a room, deleting the room once it is empty."""
        code = normalize_code(code)
        async with self._lock:
            members = self._rooms.get(code)
            if members is None:
                return 0
            members.discard(connection_id)
            if not members:
                del self._rooms[code]
                logger.info(f"Room {code} is empty, deleted")
                return 0
            logger.debug(f"Connection {connection_id} left room {code} ({len(members)} remaining)")
            return len(members)

    def member_count(self, code: str) -> int:
        return len(self._rooms.get(normalize_code(code), ()))

    def members(self, code: str) -> FrozenSet[str]:
        """Snapshot of the room's current members."""
        return frozenset(self._rooms.get(normalize_code(code), ()))

    def exists(self, code: str) -> bool:
        return normalize_code(code) in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
