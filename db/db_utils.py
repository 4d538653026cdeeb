# db/db_utils.py
"""
Database connection helpers shared by every warehouse layer.
"""

import os
import logging
from typing import Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///dwh.db"

_ENGINES: Dict[str, Engine] = {}


def get_database_url() -> str:
    """Resolve the warehouse database URL from the environment."""
    return os.getenv("DWH_DATABASE_URL", DEFAULT_DATABASE_URL)


def get_engine(database_url: Optional[str] = None) -> Engine:
    """
    Get (or lazily create) the SQLAlchemy engine for a database URL.

    Engines are cached per URL so every store of a run shares one pool.
    """
    url = database_url or get_database_url()
    engine = _ENGINES.get(url)
    if engine is None:
        kwargs = {"future": True}
        if url.startswith("sqlite"):
            # stores are read from worker threads during conformance
            kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
        engine = create_engine(url, **kwargs)
        _ENGINES[url] = engine
        logger.info(f"Created database engine for {engine.url.render_as_string(hide_password=True)}")
    return engine


def get_session(engine: Optional[Engine] = None) -> Session:
    """Open a new ORM session bound to the given (or default) engine."""
    SessionLocal = sessionmaker(bind=engine or get_engine(), expire_on_commit=False)
    return SessionLocal()


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """Create the warehouse bookkeeping tables if they don't exist."""
    from db.models import Base

    Base.metadata.create_all(engine or get_engine())


def dispose_engines() -> None:
    """Dispose every cached engine (used between test runs)."""
    for engine in _ENGINES.values():
        engine.dispose()
    _ENGINES.clear()
