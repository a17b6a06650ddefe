"""
Database configuration and session management for the reference store.

Defaults to SQLite for local dev; any SQLAlchemy URL works via DATABASE_URL.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from accessguard.config import get_settings
from accessguard.models.base import Base


def get_database_url() -> str:
    return get_settings().DATABASE_URL


def create_db_engine(database_url: Optional[str] = None, *, echo: bool = False) -> Engine:
    url = database_url or get_database_url()

    connect_args: dict = {}
    if "sqlite" in url:
        connect_args["check_same_thread"] = False

    if url.startswith("sqlite:///:memory:"):
        from sqlalchemy.pool import StaticPool

        engine = create_engine(
            url,
            echo=echo,
            connect_args=connect_args,
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args=connect_args,
        )

    return engine


engine = create_db_engine()
SessionLocal = sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(*, create_tables: bool = False, bind_engine: Optional[Engine] = None) -> None:
    """Create the reference store tables when asked to."""
    target_engine = bind_engine or engine
    if not create_tables:
        return

    # Register store models on Base.metadata before create_all().
    from accessguard.store import models as _store_models  # noqa: F401

    Base.metadata.create_all(bind=target_engine, checkfirst=True)
