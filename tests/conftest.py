import pytest
import os
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import stockbook.models  # noqa: F401
from stockbook.core.config import settings
from stockbook.core.deps import get_audit_sink, get_db
from stockbook.db.base import Base
from stockbook.main import app
from stockbook.services.audit_service import SessionAuditSink

from factories import RecordingAuditSink


@pytest.fixture()
def session_local():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(session_local):
    session = session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def audit_sink():
    return RecordingAuditSink()


@pytest.fixture()
def test_context(session_local):
    original_secret = settings.secret_key
    settings.secret_key = "test-secret-key"

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    sink = SessionAuditSink(session_local)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_audit_sink] = lambda: sink

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()
    settings.secret_key = original_secret

