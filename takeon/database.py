"""Database engine, sessions and schema creation."""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from takeon.config import DATABASE_URL

Base = declarative_base()


def create_db_engine(url: str = DATABASE_URL, **kwargs):
    """
    Engine for a database URL.

    SQLite connections are shared with FastAPI's threadpool, so thread checks are
    off; PostgreSQL gets a small pre-pinged pool.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
        kwargs.setdefault("pool_size", 5)
        kwargs.setdefault("max_overflow", 10)
    return create_engine(url, **kwargs)


engine = create_db_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=engine) -> None:
    """Create every table registered on Base."""
    # Registers the models with Base before create_all
    from takeon.models import audit, domain  # noqa: F401

    Base.metadata.create_all(bind=bind)


def get_db():
    """Dependency for FastAPI endpoints to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
