# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

from community_stage.api.v1.dependencies import get_bulk_orchestrator
from community_stage.core.security import create_access_token
from community_stage.core.settings import Settings
from community_stage.db.session import Base, create_tables, drop_tables, get_session_factory
from community_stage.db.session import get_db as app_get_session
from community_stage.main import app as fastapi_app
from community_stage.models import Community, User, Visibility
from community_stage.services import BulkInvitationOrchestrator, MembershipService

TEST_DB_URL = "sqlite://"

_TEST_SETTINGS_INSTANCE = Settings()


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    try:
        yield engine
    finally:
        drop_tables(bind=engine)
        engine.dispose()


@pytest.fixture(scope="session")
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(engine: Engine, session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()

        # Services commit for real, so wipe every table between tests.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(
    app: FastAPI,
    db_session: Session,
    session_factory: sessionmaker[Session],
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    def _get_orchestrator_override() -> BulkInvitationOrchestrator:
        # One worker: the in-memory database is a single shared connection.
        return BulkInvitationOrchestrator(session_factory, max_workers=1)

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_bulk_orchestrator] = _get_orchestrator_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_session_factory, None)
        app.dependency_overrides.pop(get_bulk_orchestrator, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Provide a Settings instance aligned with runtime configuration."""
    return _TEST_SETTINGS_INSTANCE


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Factory that persists a user with the given username."""

    def _make(username: str, display_name: str | None = None) -> User:
        user = User(username=username.lower(), display_name=display_name)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def admin_user(make_user: Callable[..., User]) -> User:
    return make_user("ada_admin", "Ada")


@pytest.fixture()
def test_user(make_user: Callable[..., User]) -> User:
    return make_user("bob_member", "Bob")


@pytest.fixture()
def outsider(make_user: Callable[..., User]) -> User:
    return make_user("olive_outsider", "Olive")


@pytest.fixture()
def service(db_session: Session) -> MembershipService:
    return MembershipService(db_session)


@pytest.fixture()
def make_community(service: MembershipService) -> Callable[..., Community]:
    """Factory that creates a community through the service."""

    def _make(
        creator: User,
        name: str = "Test Community",
        visibility: Visibility = Visibility.PUBLIC,
    ) -> Community:
        result = service.create_community(creator.id, name=name, visibility=visibility)
        assert result.success, result.error
        return result.data

    return _make


@pytest.fixture()
def community(make_community: Callable[..., Community], admin_user: User) -> Community:
    return make_community(admin_user, "Open Garden")


@pytest.fixture()
def private_community(make_community: Callable[..., Community], admin_user: User) -> Community:
    return make_community(admin_user, "Hidden Grove", Visibility.PRIVATE)


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Build bearer headers for a user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest.fixture()
def auth_token(test_user: User, auth_headers: Callable[[User], dict[str, str]]) -> dict[str, str]:
    """Bearer headers for the default test user."""
    return auth_headers(test_user)


@pytest.fixture()
def admin_token(admin_user: User, auth_headers: Callable[[User], dict[str, str]]) -> dict[str, str]:
    """Bearer headers for the community creator."""
    return auth_headers(admin_user)
