import uvicorn

# Importing the app configures logging from LOG_LEVEL / LOG_FILE
from app import app
from constants import HOST, PORT
from logging_config import get_logger

logger = get_logger(__name__)


def main():
    logger.info(f"Running on http://localhost:{PORT}")
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    main()
