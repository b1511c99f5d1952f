"""
Database Engine & Session Management
SQLAlchemy setup plus the bounded startup connection probe that decides
whether the database or the in-memory fallback backs payment storage.
"""
import logging
import os
import time
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base

logger = logging.getLogger(__name__)

Base = declarative_base()


def make_engine(database_url: str, connect_timeout: int = 5, echo: bool = False) -> Engine:
    """Build an engine; SQLite files get their directory created."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        path = database_url.replace("sqlite:///", "")
        if path and path != ":memory:" and os.path.dirname(path):
            os.makedirs(os.path.dirname(path), exist_ok=True)
        connect_args = {"check_same_thread": False, "timeout": connect_timeout}
    elif database_url.startswith(("postgresql", "mysql")):
        connect_args = {"connect_timeout": connect_timeout}
    return create_engine(database_url, connect_args=connect_args, echo=echo, pool_pre_ping=True)


def ping(engine: Engine) -> bool:
    """True when a trivial round-trip to the database succeeds."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False


def connect_with_retry(
    database_url: str,
    attempts: int = 1,
    connect_timeout: int = 5,
    backoff_seconds: float = 1.0,
    echo: bool = False,
) -> Optional[sessionmaker]:
    """Try the database a bounded number of times.

    Returns a session factory bound to a ready engine (tables created), or
    None when no URL is configured or every attempt failed.
    """
    if not database_url:
        logger.warning("DATABASE_URL not set; payments will be kept in memory only")
        return None

    try:
        engine = make_engine(database_url, connect_timeout=connect_timeout, echo=echo)
    except (SQLAlchemyError, ImportError, ValueError) as exc:
        logger.warning("Database engine could not be created: %s", exc)
        return None

    for attempt in range(1, max(attempts, 1) + 1):
        if ping(engine):
            init_db(engine)
            logger.info("Connected to database (attempt %d/%d)", attempt, attempts)
            return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
        logger.warning("Database connection attempt %d/%d failed", attempt, attempts)
        if attempt < attempts:
            time.sleep(backoff_seconds)

    engine.dispose()
    return None


def init_db(engine: Engine) -> None:
    """Create all tables. Called once the database is reachable."""
    from imfpay.models import payment as _payment_model   # noqa: F401

    Base.metadata.create_all(bind=engine)
