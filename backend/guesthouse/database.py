"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine and provides small
helpers used by the application, scripts and tests. Without a
`DATABASE_URL` the engine points at a local SQLite file `guesthouse.db`
next to the `backend/` folder.
"""

import logging
from pathlib import Path

from sqlmodel import SQLModel, Session, create_engine, select

from .config import settings

BASE = Path(__file__).resolve().parent.parent
DB_URL = settings.DATABASE_URL or f"sqlite:///{BASE / 'guesthouse.db'}"

logger = logging.getLogger("guesthouse.db")


def _engine_kwargs(url: str) -> dict:
    kwargs = {"echo": False}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_pre_ping"] = True
    if settings.DB_ISOLATION_LEVEL:
        kwargs["isolation_level"] = settings.DB_ISOLATION_LEVEL
    return kwargs


engine = create_engine(DB_URL, **_engine_kwargs(DB_URL))


def create_db_and_tables():
    """Create database tables using SQLModel metadata.

    Intended for local development, scripts and tests; production
    deployments manage the schema with their own migration tooling. The
    unique index on `slider.position` is part of the model metadata, so
    it exists as soon as the table does.
    """
    # models must be imported so their tables register on the metadata
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    if settings.ENV != "prod":
        _seed_dev_admin()


def _seed_dev_admin():
    """Ensure at least one admin account exists on development databases."""
    from . import models
    from .services import AuthService

    with Session(engine) as session:
        exists = session.exec(select(models.User.id).where(models.User.email == settings.ADMIN_EMAIL)).first()
        if exists:
            return
        AuthService(session).upsert_user(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD, "admin")
        logger.info("seeded development admin %s", settings.ADMIN_EMAIL)


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes. Services commit or roll back explicitly.
    """
    with Session(engine) as session:
        yield session
