# familybrief/db.py
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .logger import logger
from .models import Base

DEFAULT_DATABASE_URL = "sqlite:///./familybrief.db"


def resolve_database_url(url: str = None) -> str:
    """DATABASE_URL (or the local sqlite file) with Postgres pointed at psycopg 3."""
    url = url or os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # TestClient and the in-process scheduler touch the session from other threads
        return create_engine(url, future=True, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        future=True,
        pool_pre_ping=True,
        pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "5")),
        pool_recycle=180,
    )


DATABASE_URL = resolve_database_url()
engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, future=True)


def init_db(bind: Engine = None):
    """Create the brief tables if missing."""
    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    logger.debug(f"[DB] tables ready on {bind.url.render_as_string(hide_password=True)}")
