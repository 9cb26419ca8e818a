import math
from typing import Any, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import Settings, get_settings

Base = declarative_base()

_engine = None


def engine_options(settings: Settings) -> dict[str, Any]:
    options: dict[str, Any] = {
        "future": True,
        "pool_pre_ping": True,
        "pool_timeout": settings.query_timeout_seconds,
    }
    if make_url(settings.database_url).get_backend_name() == "postgresql":
        # libpq only takes whole seconds here.
        options["connect_args"] = {"connect_timeout": max(1, math.ceil(settings.query_timeout_seconds))}
    return options


def get_engine(settings: Optional[Settings] = None) -> Engine:
    """Return the process-wide engine, creating it on first use.

    ``settings`` only applies to that first call; later calls get the same
    engine whatever they pass. Call ``dispose_engine`` before switching to
    another database URL or timeout.
    """
    global _engine
    if _engine is None:
        settings = settings or get_settings()
        _engine = create_engine(settings.database_url, **engine_options(settings))
    return _engine


def make_session_factory(engine: Engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def init_db(engine: Optional[Engine] = None) -> None:
    # Importing registers the books table on Base.metadata.
    from . import entities  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())


def dispose_engine() -> None:
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None
