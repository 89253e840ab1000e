"""
SQLAlchemy database connection and setup
Holds affiliate profiles and their registrations
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import DATABASE_URL, logger

_url = DATABASE_URL or "sqlite:///./afiliados.db"
if not DATABASE_URL:
    logger.warning("DATABASE_URL not set - using local SQLite file afiliados.db")


def build_engine(url: str):
    """Create an engine; SQLite gets a single shared connection when in-memory."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=False, **kwargs)
    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=20,
        echo=False,
    )


engine = build_engine(_url)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for ORM models
Base = declarative_base()


def get_db():
    """
    Dependency for FastAPI routes to get database session
    Usage:
        @router.get("/items")
        def list_items(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """
    Initialize database tables
    Call this on application startup
    """
    # Register models on Base.metadata
    import models.affiliates  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
