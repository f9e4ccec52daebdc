"""
Database configuration and session management
"""
import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from testpilot.core.config import get_settings
from testpilot.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)

# Lazy initialization - don't create engine at module level
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None

# Base class for models
Base = declarative_base()


def _build_engine(database_url: str) -> Engine:
    settings = get_settings()
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": 5}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            # One shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
    else:
        kwargs = {"pool_pre_ping": True}

    engine = create_engine(database_url, echo=settings.log_sqlalchemy, **kwargs)

    if not settings.log_sqlalchemy:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    return engine


def init_engine(database_url: Optional[str] = None) -> Engine:
    """(Re)create the engine and session factory, e.g. to point tests at another database"""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    url = database_url or get_settings().database_url
    _engine = _build_engine(url)
    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    logger.debug("Database engine initialized", extra={"database_url": url.split("@")[-1]})
    return _engine


def get_engine() -> Engine:
    """Get or create database engine (lazy initialization)"""
    if _engine is None:
        init_engine()
    return _engine


def get_session_local() -> sessionmaker:
    """Get or create session factory (lazy initialization)"""
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


def create_all_tables() -> None:
    """Create tables for all registered models"""
    import testpilot.models  # noqa: F401  registers models on Base.metadata

    Base.metadata.create_all(bind=get_engine())
