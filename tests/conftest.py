import os

from cryptography.fernet import Fernet

os.environ["ENV"] = "test"
os.environ["TEST_DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.setdefault("FERNET_KEY", Fernet.generate_key().decode())
# Outbound endpoints must be opted into per test.
for _name in (
    "EVOLUTION_API_URL",
    "EVOLUTION_API_KEY",
    "EVOLUTION_VERIFY_TOKEN",
    "EVOLUTION_WEBHOOK_SECRET",
    "N8N_INBOUND_WEBHOOK_URL",
    "N8N_WEBHOOK_TOKEN",
    "N8N_OUTBOUND_WEBHOOK_URL",
    "N8N_MESSAGE_READ_WEBHOOK_URL",
    "OUTBOUND_DISPATCH_MODE",
):
    os.environ.pop(_name, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.db import Base, get_db  # noqa: E402
from app.main import create_app  # noqa: E402

pytest_plugins = [
    "tests.fixtures.workspace_fixtures",
    "tests.fixtures.conversation_fixtures",
]


@pytest.fixture(scope="function")
def db():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def client(db):
    """TestClient bound to the test session."""
    app = create_app(testing=True)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
