"""Centralized configuration — all env vars in one place."""
import os
import logging
from dotenv import load_dotenv

load_dotenv()

# --- Server ---
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3001"))
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "")

# --- WebSocket Security ---
WS_RATE_LIMIT_PER_SEC = 10  # max messages per second per client
MAX_WS_MESSAGE_SIZE = 8192  # bytes

# --- Quiz ---
NUM_OPTIONS = 5
DEFAULT_TIME_LIMIT = int(os.getenv("DEFAULT_TIME_LIMIT", "30"))
MIN_TIME_LIMIT = 1
MAX_TIME_LIMIT = 3600
TICK_INTERVAL_SECONDS = float(os.getenv("TICK_INTERVAL_SECONDS", "1.0"))
WINNERS_PER_QUIZ = 2  # fastest correct answers promoted per quiz

# --- Text limits ---
MAX_NAME_LENGTH = 20
MAX_QUESTION_LENGTH = 2000
MAX_OPTION_LENGTH = 500

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE", "")  # empty = stdout only


def setup_logging():
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if LOG_FILE:
        handlers.append(logging.FileHandler(LOG_FILE))
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
