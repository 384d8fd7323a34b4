"""
Shared test fixtures.
Every test gets a fresh in-memory SQLite database with the account and
message tables created, so tests never touch a file on disk.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from social_media.main import app
from social_media.metrics import reset_metrics
from social_media.schemas import AccountCredentials
from social_media.services import AccountService, MessageService, build_services
from social_media.storage import create_db_engine, get_db, init_db


@pytest.fixture
def engine() -> Iterator[Engine]:
    test_engine = create_db_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def services(db: Session) -> tuple[AccountService, MessageService]:
    return build_services(db)


@pytest.fixture
def account_service(services: tuple[AccountService, MessageService]) -> AccountService:
    return services[0]


@pytest.fixture
def message_service(services: tuple[AccountService, MessageService]) -> MessageService:
    return services[1]


@pytest.fixture
def alice(account_service: AccountService):
    account = account_service.register(AccountCredentials(username="alice", password="secret"))
    assert account is not None
    return account


@pytest.fixture
def client(session_factory: sessionmaker) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    reset_metrics()
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
