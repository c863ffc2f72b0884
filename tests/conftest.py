# tests/conftest.py

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.db import get_db, init_db
from app.main import app
from app.models.orm.base import Base

AUTH_HEADERS = {"Authorization": "Bearer dev-token"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """A session bound to a fresh in-memory database for each test"""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session):
    """Test client that shares the test session and sends a valid bearer token"""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with_auth = TestClient(app, headers=AUTH_HEADERS)
    yield with_auth
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def base_time():
    return datetime(2024, 1, 1, 9, 0, 0)
