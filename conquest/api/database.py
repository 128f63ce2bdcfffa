"""
Database setup for the conquest API.
Games are stored in SQLite by default; set DATABASE_URL (e.g. Postgres) to use a server.
"""

import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from conquest.config import DB_PATH

Base = declarative_base()


def resolve_database_url(raw_url: str | None = None) -> str:
    """
    DATABASE_URL if set, else a SQLite file at CONQUEST_DB_PATH.
    postgres:// is rewritten to postgresql:// (SQLAlchemy 2.x rejects the short scheme).
    """
    url = raw_url if raw_url is not None else os.environ.get("DATABASE_URL")
    if not url:
        return f"sqlite:///{DB_PATH}"
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def make_engine(url: str) -> Engine:
    # API handlers run in a thread pool; SQLite connections must be shareable
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


DATABASE_URL = resolve_database_url()
engine = make_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)


def get_db():
    """Dependency that yields a DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create the games table if it does not exist."""
    Base.metadata.create_all(bind=bind or engine)
