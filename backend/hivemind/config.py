"""Application settings loaded from environment variables using pydantic-settings."""

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Hivemind application configuration.

    All settings can be overridden via environment variables.
    Capacity and extraction limits are read once at startup and handed to
    the store and extractor; changing them requires a restart.
    """

    DATABASE_DIR: str = "./data"
    FRONTEND_URL: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # Entity store
    MAX_ENTITIES: int = 5000
    CAPACITY_POLICY: Literal["reject", "evict_lru"] = "reject"

    # Extraction
    CONTEXT_RADIUS: int = 30
    MAX_INPUT_CHARS: int = 100 * 1024

    # Layout
    LAYOUT_MAX_ITERATIONS: int = 500
    LAYOUT_TICK_SECONDS: float = 1 / 60

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }
