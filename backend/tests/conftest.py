import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_INIT_MODE", "create_all")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-signing-secret-with-enough-entropy-0123456789")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "coderoom-identity-tests.log"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event

from coderoom.core.database import Base, SessionLocal, engine, get_db
from coderoom.main import app
from coderoom.services.bootstrap import ensure_root_user
from coderoom.services.rate_limiter import rate_limiter
from coderoom.services.session_service import session_service

ROOT_EMAIL = "root@example.com"
ROOT_PASSWORD = "root-password-1"


@event.listens_for(engine, "connect")
def _enforce_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def root_user(db):
    return ensure_root_user(db, ROOT_EMAIL, ROOT_PASSWORD)


@pytest.fixture
def root_headers(db, root_user):
    pair = session_service.login(db, ROOT_EMAIL, ROOT_PASSWORD)
    return {"Authorization": f"Bearer {pair.access_token}"}
