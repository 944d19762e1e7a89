from __future__ import annotations

from typing import Callable, Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from pastebin import create_app
from pastebin.db import Base
from pastebin.domain import models as _models  # noqa: F401
from pastebin.domain.clock import fixed_clock
from pastebin.repositories.paste_repository import PasteRepository
from pastebin.services.paste_service import PasteService


@pytest.fixture(scope="function")
def engine() -> Generator[Engine, None, None]:
    """
    Create a fresh in-memory SQLite engine for each test function.

    This keeps tests focused on domain behavior while using a real database
    session for repository/service operations.
    """

    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture(scope="function")
def session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session
        session.rollback()


@pytest.fixture
def paste_repo(session: Session) -> PasteRepository:
    return PasteRepository(session=session)


@pytest.fixture
def service_at(session_factory: sessionmaker) -> Callable[[int], PasteService]:
    """Build a PasteService whose clock is frozen at the given epoch milliseconds."""

    def _build(now_ms: int) -> PasteService:
        clock = fixed_clock(now_ms)
        return PasteService(session_factory=session_factory, clock=clock, creation_clock=clock)

    return _build


@pytest.fixture
def app() -> Generator[Flask, None, None]:
    app = create_app("testing")
    app.config.update(TEST_MODE=True)
    yield app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()
