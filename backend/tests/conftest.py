"""Pytest configuration and shared fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from inbox.main import app
from inbox.database import Base, get_db, enable_sqlite_foreign_keys
from inbox.models import User
from inbox.utils.security import create_access_token


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")


@pytest.fixture(scope="function")
def engine(tmp_path):
    """Create an isolated test database engine per test."""
    database_url = f"sqlite:///{tmp_path / 'inbox_test.db'}"
    engine = create_engine(database_url, connect_args={"check_same_thread": False})
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a new database session for a service-level test."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    """Create a test client with database session override."""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def users(session_factory):
    """Seed the user directory with a rider, a driver and an outsider."""
    session = session_factory()
    seeded = {
        "rider": User(id="user-rider", name="Rider One", email="rider@example.com", phone="+966500000001"),
        "driver": User(id="user-driver", name="Driver Two", email="driver@example.com", phone="+966500000002"),
        "outsider": User(id="user-outsider", name="Outsider", email="outsider@example.com"),
    }
    session.add_all(seeded.values())
    session.commit()
    ids = {key: user.id for key, user in seeded.items()}
    session.close()
    return ids


def auth_headers(user_id: str) -> dict:
    """Bearer header for a user id, signed like the auth service does."""
    token = create_access_token({"sub": user_id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def headers(users):
    """Authorization headers keyed like the ``users`` fixture."""
    return {key: auth_headers(user_id) for key, user_id in users.items()}
