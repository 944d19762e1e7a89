from __future__ import annotations

import typing as t

from flask import Flask
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool


Base = declarative_base()

_engine: Engine | None = None
SessionLocal: scoped_session = scoped_session(
    sessionmaker(autocommit=False, autoflush=False)
)


def get_engine() -> Engine:
    """
    Return the engine configured by ``init_db(app)``.
    """
    if _engine is None:
        raise RuntimeError("Database engine is not initialized. Call init_db(app) first.")
    return t.cast(Engine, _engine)


def _engine_options(database_uri: str) -> dict[str, t.Any]:
    # A private in-memory SQLite database only survives on a single connection.
    if database_uri.startswith("sqlite") and ":memory:" in database_uri:
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {}


def init_db(app: Flask) -> None:
    """
    Initialize the SQLAlchemy engine and session factory for the Flask app.

    Reads the database URL from ``app.config['SQLALCHEMY_DATABASE_URI']``.
    When ``AUTO_CREATE_TABLES`` is set the schema is created on startup;
    otherwise it is expected to be managed by Alembic migrations.
    """
    global _engine

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI")
    if not database_uri:
        raise RuntimeError(
            "SQLALCHEMY_DATABASE_URI is not configured on the Flask app. "
            "Set the DATABASE_URL environment variable."
        )

    _engine = create_engine(
        database_uri,
        echo=app.config.get("SQLALCHEMY_ECHO", False),
        **_engine_options(database_uri),
    )
    SessionLocal.remove()
    SessionLocal.configure(bind=_engine)

    if app.config.get("AUTO_CREATE_TABLES", False):
        # Import models so that Base.metadata knows about every table.
        from pastebin.domain import models as _models  # noqa: F401

        Base.metadata.create_all(_engine)

    @app.teardown_appcontext
    def remove_session(_exc: BaseException | None) -> None:
        """Remove the scoped session at the end of the request."""

        SessionLocal.remove()


def ping_database() -> None:
    """Run a trivial query; raises ``SQLAlchemyError`` when storage is unreachable."""

    with get_engine().connect() as connection:
        connection.execute(text("SELECT 1"))
