# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Generator, Iterator
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from crypto_heaven.api.v1.dependencies import create_access_token
from crypto_heaven.db.session import Base
from crypto_heaven.db.session import get_db as app_get_session
from crypto_heaven.main import app as fastapi_app
from crypto_heaven.models import Community, User
from crypto_heaven.services import community_service

TEST_DB_URL = "sqlite://"

_USER_COUNTER = count(1)


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    # A fresh in-memory database per test keeps commits from leaking.
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory that persists onboarded users."""

    def _make_user(name: str = "User", external_id: str | None = None) -> User:
        number = next(_USER_COUNTER)
        user = User(
            external_id=external_id or f"user_{number}",
            name=name,
            username=f"{name.lower().replace(' ', '_')}_{number}",
            image=f"https://img.example/{number}.png",
            onboarded=True,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def test_user(make_user: Callable[..., User]) -> User:
    """Create and return the primary test user (community creator)."""
    return make_user("Test User")


@pytest.fixture()
def other_user(make_user: Callable[..., User]) -> User:
    """Create and return a second persisted user."""
    return make_user("Other User")


@pytest.fixture()
def third_user(make_user: Callable[..., User]) -> User:
    """Create and return a third persisted user."""
    return make_user("Third User")


def auth_headers_for(user: User) -> dict[str, str]:
    token = create_access_token(user.external_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_token(test_user: User) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    return auth_headers_for(test_user)


@pytest.fixture()
def other_auth_token(other_user: User) -> dict[str, str]:
    """Return authorization headers for the secondary test user."""
    return auth_headers_for(other_user)


@pytest.fixture()
def third_auth_token(third_user: User) -> dict[str, str]:
    """Return authorization headers for the third test user."""
    return auth_headers_for(third_user)


@pytest.fixture()
def community(db_session: Session, test_user: User) -> Community:
    """Create a public community owned by ``test_user``."""
    return community_service.create_community(
        db_session,
        community_id="org_public",
        name="Test Community",
        username="test_community",
        image=None,
        bio="Test community description",
        created_by_id=test_user.external_id,
    )


@pytest.fixture()
def private_community(db_session: Session, test_user: User) -> Community:
    """Create a private community owned by ``test_user``."""
    return community_service.create_community(
        db_session,
        community_id="org_private",
        name="Private Community",
        username="private_community",
        image=None,
        bio=None,
        created_by_id=test_user.external_id,
        is_private=True,
    )


@pytest.fixture()
def headers_for() -> Callable[[User], dict[str, str]]:
    """Return a helper building bearer headers for any user."""
    return auth_headers_for
