from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from gateway.app.config.settings import settings


def get_engine() -> Engine:
    """Get the SQLAlchemy engine, creating it if necessary."""
    if not hasattr(get_engine, "_cache"):
        get_engine._cache = {}

    url = settings.database_url
    if url not in get_engine._cache:
        connect_args = {}
        # Ensure directory exists for SQLite files
        if url.startswith("sqlite:///"):
            db_path = Path(url[len("sqlite:///"):])
            db_path.parent.mkdir(parents=True, exist_ok=True)
        if url.startswith("sqlite"):
            # FastAPI runs sync dependencies in a threadpool
            connect_args["check_same_thread"] = False

        get_engine._cache[url] = create_engine(
            url, echo=False, pool_pre_ping=True, connect_args=connect_args
        )

    return get_engine._cache[url]


def reset_engine_for_tests():
    """Dispose and clear engine cache (for tests only)."""
    if hasattr(get_engine, "_cache"):
        for engine in get_engine._cache.values():
            engine.dispose()
        get_engine._cache.clear()
