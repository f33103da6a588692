"""
MODULE OVERVIEW:
Application-wide configuration using Pydantic Settings.

WHAT IS HAPPENING HERE:
Every timing knob that decides how the three delivery techniques behave lives here:
how often the dispatch engine generates a notification, how long a long-poll
request may be held open, how often push connections get a heartbeat.
Tests build their own `Settings(...)` and hand it to `create_app()`, so nothing
below is read from a global inside the engine itself.
"""
import sys

from loguru import logger
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Dispatch engine
    GENERATION_ENABLED: bool = True
    GENERATION_INTERVAL_S: float = 5.0

    # Short Polling
    SHORT_POLL_INTERVAL_MS: int = 5000
    LATEST_DEFAULT_LIMIT: int = 10

    # Long Polling
    LONG_POLL_TIMEOUT_S: float = 30.0

    # Push (SSE + WebSocket)
    SSE_HEARTBEAT_INTERVAL_S: float = 15.0
    WS_HEARTBEAT_INTERVAL_S: float = 30.0
    PUSH_QUEUE_SIZE: int = 100
    HISTORY_DEFAULT_LIMIT: int = 50

    class Config:
        env_file = ".env"
        # Tolerate missing env vars to allow easy out-of-the-box execution
        env_file_encoding = 'utf-8'
        extra = 'ignore'


def configure_logging(level: str) -> None:
    """Route loguru to stderr at the configured level (loguru defaults to DEBUG)."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


settings = Settings()
