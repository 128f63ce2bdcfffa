"""
Single place for default game configuration.
Values can be overridden with CONQUEST_* environment variables.
"""

import logging
import os

# Map id from data/maps/<id>.json. This is the default for new games.
DEFAULT_MAP_ID = os.environ.get("CONQUEST_DEFAULT_MAP", "classic")

# Fraction of all territories a single player must own to win (1.0 = world domination).
try:
    DEFAULT_VICTORY_THRESHOLD = float(os.environ.get("CONQUEST_VICTORY_THRESHOLD", "1.0"))
except ValueError:
    DEFAULT_VICTORY_THRESHOLD = 1.0

LOG_LEVEL = os.environ.get("CONQUEST_LOG_LEVEL", "INFO").upper()

# SQLite file used by the API when DATABASE_URL is not set
DB_PATH = os.environ.get(
    "CONQUEST_DB_PATH",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "conquest.db"),
)


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the CLI and the API server."""
    logging.basicConfig(
        level=getattr(logging, level or LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
