"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine for the portal
datastore and provides small helpers used by the application, the seed
script and tests. Without `CSR_DATABASE_URL` the database is a SQLite
file at the repository root named `portal.db`.
"""

from sqlmodel import SQLModel, create_engine, Session
from pathlib import Path
from .config import settings

BASE = Path(__file__).resolve().parent.parent
DB_URL = settings.DATABASE_URL or f"sqlite:///{BASE / 'portal.db'}"
engine = create_engine(
    DB_URL,
    echo=False,
    connect_args={"check_same_thread": False} if DB_URL.startswith("sqlite") else {},
)


def create_db_and_tables():
    """Create database tables using SQLModel metadata.

    Importing `models` registers every table on `SQLModel.metadata`.
    Production deployments run against the hosted schema, which already
    has these tables; `create_all` leaves existing tables untouched.
    """
    from . import models  # noqa: F401
    SQLModel.metadata.create_all(engine)


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(engine) as session:
        yield session
