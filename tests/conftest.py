"""
Pytest configuration and fixtures for Cloud Capsule tests.

Provides a throwaway SQLite database per test, a controllable clock, and a
FastAPI TestClient wired to both.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from cloudcapsule.config import Settings
from cloudcapsule.database import init_db, make_engine
from cloudcapsule.main import create_app
from cloudcapsule.models import User

START = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        db_url=f"sqlite:///{tmp_path / 'capsule.db'}",
        secret_key="test-secret",
        upload_dir=str(tmp_path / "uploads"),
        max_upload_bytes=1024,
        log_level="DEBUG",
    )


@pytest.fixture
def engine(settings: Settings):
    engine = make_engine(settings.db_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


def make_user(session: Session, username: str) -> User:
    user = User(username=username, email=f"{username}@example.com", password_hash="x")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def alice(session: Session) -> User:
    return make_user(session, "alice")


@pytest.fixture
def bob(session: Session) -> User:
    return make_user(session, "bob")


@pytest.fixture
def app(settings: Settings, clock: FakeClock):
    application = create_app(settings, clock=clock)
    yield application
    application.state.engine.dispose()


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


def register(client: TestClient, username: str, password: str = "s3cret-pass") -> dict:
    r = client.post(
        "/api/auth/register",
        json={"username": username, "email": f"{username}@example.com", "password": password},
    )
    assert r.status_code == 201, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def user_factory(session: Session):
    return lambda username: make_user(session, username)


@pytest.fixture
def auth_headers(client: TestClient):
    """Registers a user through the API and returns its bearer headers."""
    return lambda username: register(client, username)
