"""
Nutrition Portal - Database Setup

One engine per process, one SQLModel session per request.

SQLite (the development default) gets foreign keys switched on so voucher
and detail rows cannot point at missing accounts; server databases get a
small connection pool.
"""

from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from nutrition_portal.config import settings


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Build the engine for ``database_url`` (defaults to settings.DATABASE_URL).

    In-memory SQLite needs StaticPool so every session sees the same database.
    """
    url = database_url or settings.DATABASE_URL

    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_size=5, max_overflow=10, pool_pre_ping=True)

    engine = create_engine(
        url,
        echo=echo,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def init_db(engine: Engine) -> None:
    """Create the account, detail, revocation and voucher tables if missing."""
    from nutrition_portal.auth import models  # noqa: F401
    from nutrition_portal.vouchers import models as voucher_models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session_factory(engine: Engine):
    def session_factory() -> Session:
        return Session(engine)

    return session_factory


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding a request-scoped database session.

    The session comes from the factory installed on app.state at startup
    and is closed when the request finishes.
    """
    db = request.app.state.db_session_factory()
    try:
        yield db
    finally:
        db.close()
