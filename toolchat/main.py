"""Application entry point: FastAPI app served by uvicorn."""

import os

import uvicorn
from dotenv import load_dotenv

from toolchat.core.error_handling import setup_logging

# Load environment variables from .env
load_dotenv()

# Configure logging
setup_logging()

from toolchat.api.routes import app  # noqa: E402


def run():
    uvicorn.run(
        "toolchat.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "").lower() in ("1", "true", "yes"),
    )


if __name__ == "__main__":
    run()
