# tests/conftest.py
import os

# Must be set before anything reads app.config.get_settings()
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("STUDIO_TIMEZONE", "UTC")
os.environ.setdefault("CONFLICT_POLICY", "block")
os.environ.setdefault("RETRY_BASE_DELAY", "0")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from models.base import Base
from models import member, scheduling, subscription, user  # noqa: F401 (register models)
from app.query_cache import QueryCache
from app.web_app import create_app


@pytest.fixture()
def engine():
    # SQLite in-memory DB just for tests; StaticPool shares it across sessions
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        future=True,
        expire_on_commit=False,
    )


@pytest.fixture()
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def cache():
    return QueryCache()


@pytest.fixture()
def app(session_factory, cache):
    app = create_app(session_factory=session_factory, cache=cache)
    app.config["TESTING"] = True
    return app


@pytest.fixture()
def client(app):
    return app.test_client()
