from fastapi import APIRouter, HTTPException, Request
from schemas.rooms import RoomDetailsResponse
from backend import normalize_code
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("/{room_code}", response_model=RoomDetailsResponse)
async def get_room_details(room_code: str, request: Request):
    """
    Look up a live room by code (case-insensitive).

    Returns:
    - room: Normalized room code
    - count: Current number of members
    - capacity: Maximum members allowed
    - is_full: Whether the room has reached capacity
    """
    registry = request.app.state.registry
    code = normalize_code(room_code)
    client_host = request.client.host if request.client else 'unknown'
    logger.info(f"Room details request for {code} from {client_host}")

    if not registry.exists(code):
        logger.warning(f"Room details failed: Room {code} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    count = registry.member_count(code)
    return RoomDetailsResponse(
        room=code,
        count=count,
        capacity=registry.capacity,
        is_full=count >= registry.capacity,
    )
