"""Database configuration for the SQL storage backend."""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
import logging

logger = logging.getLogger(__name__)

# Create base class for models
Base = declarative_base()


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for ``database_url``.

    In-memory SQLite shares one connection so every session sees the same
    database.
    """
    if not database_url:
        logger.error("❌ DATABASE_URL is not configured")
        raise ValueError("DATABASE_URL is required for the sql storage backend")

    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Initialize database tables."""
    logger.info("Initializing database...")
    logger.info(f"Connecting to: {engine.url.render_as_string(hide_password=True)}")

    try:
        # Import all models here to ensure they are registered
        from router_telemetry.infrastructure.repositories import models  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("✅ Database tables created")
        logger.info(f"Tables available: {', '.join(sorted(Base.metadata.tables))}")
    except Exception as e:
        logger.error(f"❌ Error initializing database: {str(e)}")
        raise
