"""
SQLAlchemy model for persisted games.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Text

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Game(Base):
    __tablename__ = "games"

    id = Column(String(36), primary_key=True)  # uuid
    name = Column(String(128), nullable=False)  # user-defined game name
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
    status = Column(String(32), nullable=False, default="active")  # active | finished
    game_state = Column(Text, nullable=False)  # JSON string of full game state
    config = Column(Text, nullable=True)  # JSON: {"map": <map snapshot>, "map_id": str}
    action_log = Column(Text, nullable=True)  # JSON array of applied actions
