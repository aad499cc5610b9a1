from collections.abc import Generator
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import get_settings
from .errors import StoreUnavailableError

Base = declarative_base()

_engine = None
_SessionLocal = None


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # Sessions are opened on the threadpool, not the thread that created the connection.
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


def get_engine(url: Optional[str] = None):
    global _engine
    if _engine is None:
        settings = get_settings()
        db_url = url or settings.database_url
        _engine = create_engine(db_url, future=True, **_engine_kwargs(db_url))
    return _engine


def get_session_factory():
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, expire_on_commit=False)
    return _SessionLocal


def get_session() -> Generator:
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    # Imported for its side effect of registering the mapped tables on Base.
    from . import entities  # noqa: F401

    engine = get_engine()
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as exc:
        raise StoreUnavailableError(f"Could not initialise database at {engine.url!r}") from exc
