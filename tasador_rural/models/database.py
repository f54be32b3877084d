"""Database models and session management."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from tasador_rural.config import settings


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class ComparablesCacheDB(Base):
    """Cached estimation results, one row per query hash."""

    __tablename__ = "comparables_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    query_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    results: Mapped[dict] = mapped_column(JSON)
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)


def get_engine(url: str | None = None) -> Engine:
    """Create database engine."""
    url = url or settings.database_url
    # Render's and Heroku's URLs use the scheme SQLAlchemy 2.x rejects
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return create_engine(url, echo=False)


def get_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the engine."""
    return sessionmaker(bind=engine)


def init_db(engine: Engine | None = None) -> None:
    """Initialize database tables."""
    engine = engine or get_engine()
    Base.metadata.create_all(engine)
