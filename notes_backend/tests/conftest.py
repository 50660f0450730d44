from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from notes_api.config import Settings
from notes_api.database import Database
from notes_api.main import create_app
from notes_api.models import User

PASSWORD = "correct horse battery"


class FakeClock:
    """Deterministic, manually advanced UTC clock."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        JWT_SECRET="test-secret",
        DATABASE_URL="sqlite://",
        BCRYPT_ROUNDS=4,
        ENVIRONMENT="test",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def database(settings):
    database = Database(settings.DATABASE_URL)
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def db_session(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_user(db_session):
    def _make_user(email: str) -> User:
        user = User(email=email, password_hash="x", created_at=datetime.now(timezone.utc),
                    updated_at=datetime.now(timezone.utc))
        db_session.add(user)
        db_session.commit()
        return user
    return _make_user


@pytest.fixture
def app(settings, database, clock):
    app = create_app(settings, database)
    app.state.clock = clock
    return app


@pytest.fixture
def make_client(app):
    """Factory for independent clients (separate cookie jars) on the same app."""
    clients = []

    def _make_client() -> TestClient:
        client = TestClient(app, base_url="https://testserver")
        client.__enter__()
        clients.append(client)
        return client

    yield _make_client
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


def register(client: TestClient, email: str, password: str = PASSWORD):
    return client.post("/auth/register", json={"email": email, "password": password})


@pytest.fixture
def alice(make_client) -> TestClient:
    client = make_client()
    assert register(client, "alice@example.com").status_code == 201
    return client


@pytest.fixture
def bob(make_client) -> TestClient:
    client = make_client()
    assert register(client, "bob@example.com").status_code == 201
    return client
