from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from . import config

# Base class for declarative ORM models.
Base = declarative_base()


def make_engine(url: str = None):
    """Create an engine for the given URL (defaults to DATABASE_URL)."""
    url = url or config.DATABASE_URL
    if url.startswith("sqlite"):
        # FastAPI serves sync endpoints from a thread pool.
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # An in-memory database lives as long as its single connection.
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url)


def make_session_factory(engine):
    """Create the tables if needed and return a configured Session class."""
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Engine for the configured database.
engine = make_engine()

