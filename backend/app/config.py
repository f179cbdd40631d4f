"""Configuration for the delivery fare service."""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


class Settings:
    """Application settings."""

    # API Settings
    API_TITLE = "Delivery Fare Service"
    API_VERSION = "1.0.0"
    API_DESCRIPTION = (
        "Distance-based fare quotes for food, grocery and parcel delivery"
    )

    # Database Settings
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./delivery_pricing.db")

    # Cache Settings (empty REDIS_URL keeps the cache in-process only)
    REDIS_URL = os.getenv("REDIS_URL", "")
    PLAN_CACHE_TTL_SECONDS = _env_int("PLAN_CACHE_TTL_SECONDS", 30)

    # Quote signing
    QUOTE_SIGNING_SECRET = os.getenv("QUOTE_SIGNING_SECRET", "")
    QUOTE_TTL_SECONDS = _env_int("QUOTE_TTL_SECONDS", 600)

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # CORS Settings
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173",
        ).split(",")
        if origin.strip()
    ]

    # Batch simulation limit
    MAX_QUOTES_PER_REQUEST = 50


settings = Settings()
