from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Base for ALL models
Base = declarative_base()


# -----------------------
# SQLAlchemy Engine
# -----------------------
def build_engine(database_url: str) -> Engine:
    """Create the engine for DATABASE_URL. In-memory SQLite shares one connection."""
    database_url = database_url.strip()
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set.")

    kwargs = {"future": True, "echo": False, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_recycle"] = 300
    return create_engine(database_url, **kwargs)


def build_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


# -----------------------
# Dependency
# -----------------------
def get_db(request: Request) -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
