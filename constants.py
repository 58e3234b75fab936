import os

ROOM_CAPACITY = int(os.getenv("ROOM_CAPACITY", 100))
MAX_MESSAGE_LENGTH = int(os.getenv("MAX_MESSAGE_LENGTH", 2000))
RATE_LIMIT_BURST = int(os.getenv("RATE_LIMIT_BURST", 5))  # max messages per window
RATE_LIMIT_WINDOW_MS = int(os.getenv("RATE_LIMIT_WINDOW_MS", 10_000))
ROOM_CODE_LENGTH = int(os.getenv("ROOM_CODE_LENGTH", 6))
SEND_TIMEOUT_SECONDS = float(os.getenv("SEND_TIMEOUT_SECONDS", 5))  # per-recipient delivery bound

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

AVATAR_COLORS = (
    "#f44336", "#e91e63", "#9c27b0", "#673ab7", "#3f51b5",
    "#2196f3", "#009688", "#4caf50", "#ff9800", "#795548",
)
