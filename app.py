from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pydantic import ValidationError
from routers.rooms import rooms_router
from backend import RoomRegistry
from broadcaster import Broadcaster
from rate_limiter import RateLimiter
from session import ConnectionSession
from schemas.rooms import AckResponse, ClientFrame
from constants import LOG_FILE, LOG_LEVEL
from typing import Optional
from logging_config import get_logger, setup_logging
import uuid
import json
import os

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

STATIC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "static")


def create_app(registry: Optional[RoomRegistry] = None, rate_limiter: Optional[RateLimiter] = None) -> FastAPI:
    """Build the relay app. Each app owns its own registry, limiter and broadcaster."""
    app = FastAPI(title="Ephemeral Chat Relay")

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.registry = registry or RoomRegistry()
    app.state.rate_limiter = rate_limiter or RateLimiter()
    app.state.broadcaster = Broadcaster(app.state.registry)

    app.include_router(rooms_router)

    @app.get("/")
    async def index():
        return FileResponse(os.path.join(STATIC_DIR, "index.html"))

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket.accept()
        session = ConnectionSession(
            connection_id=str(uuid.uuid4()),
            registry=app.state.registry,
            rate_limiter=app.state.rate_limiter,
            broadcaster=app.state.broadcaster,
        )
        app.state.broadcaster.register(session.connection_id, websocket)
        logger.info(f"User connected: {session.connection_id}")
        await serve_connection(websocket, session)

    logger.info("FastAPI application initialized")
    return app


async def serve_connection(websocket: WebSocket, session: ConnectionSession) -> None:
    """Receive frames until the client goes away, then clean up exactly once."""
    try:
        await websocket.send_text(json.dumps({
            "event": "connected",
            "data": {"id": session.connection_id, "avatarColor": session.avatar_color},
        }))
        while True:
            try:
                data = await websocket.receive_text()
            except WebSocketDisconnect:
                logger.info(f"WebSocket disconnected normally for connection {session.connection_id}")
                break

            try:
                frame = ClientFrame.model_validate(json.loads(data))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Invalid frame from connection {session.connection_id}: {e}")
                await send_ack(websocket, None, AckResponse(ok=False, error="Invalid frame"))
                continue

            async def ack(response: AckResponse, ack_id=frame.ack):
                await send_ack(websocket, ack_id, response)

            logger.debug(f"Received {frame.event} from connection {session.connection_id}")
            await session.handle_event(frame.event, frame.data, ack)
    except Exception as e:
        logger.error(f"WebSocket error for connection {session.connection_id}: {e}", exc_info=True)
    finally:
        await session.disconnect()


async def send_ack(websocket: WebSocket, ack_id, response: AckResponse) -> None:
    await websocket.send_text(json.dumps({"event": "ack", "ack": ack_id, "data": response.to_payload()}))


app = create_app()
