import logging
import os
from pathlib import Path

ENV = os.getenv("ENV", "development").lower()

_DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent / "studystreak.db"

# Postgres is used when any of these is set (hosted deployments)
DATABASE_URL = (
    os.environ.get("DATABASE_URL")
    or os.environ.get("DATABASE_POSTGRES_URL")
    or os.environ.get("SUPABASE_DB_URL")
)

BASIC_AUTH_USER = os.environ.get("BASIC_AUTH_USER")
BASIC_AUTH_PASSWORD = os.environ.get("BASIC_AUTH_PASSWORD")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Live refresh poll period
REFRESH_INTERVAL_SECONDS = float(os.getenv("STUDYSTREAK_REFRESH_SECONDS", "300"))

# Domain rules, not configurable per user
QUALIFYING_MINUTES = 30
LOOKBACK_DAYS = 365
STREAK_WALK_LIMIT_DAYS = 365
GRID_WEEKS = 53
DAYS_PER_WEEK = 7


def get_db_path() -> str:
    return os.environ.get("STUDYSTREAK_DB", str(_DEFAULT_DB_PATH))


def configure_logging() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def validate_config() -> None:
    """
    Validate required configuration.

    Only strict in production so local development and tests run with no
    environment setup.
    """
    if ENV != "production":
        return

    errors: list[str] = []

    if not BASIC_AUTH_USER or not BASIC_AUTH_PASSWORD:
        errors.append("BASIC_AUTH_USER and BASIC_AUTH_PASSWORD must be set in production")

    if REFRESH_INTERVAL_SECONDS <= 0:
        errors.append("STUDYSTREAK_REFRESH_SECONDS must be positive")

    if errors:
        raise RuntimeError("Invalid configuration:\n- " + "\n- ".join(errors))
