"""
Nutrition Portal - Test Configuration

Pytest fixtures for the API tests.
Provides test database, client, and account fixtures.
"""

import os

# Settings are read at import time; point them at throwaway values first.
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CSRF_SECRET_KEY"] = "test-csrf-secret"
os.environ["CSRF_ENFORCEMENT"] = "advisory"
os.environ["BCRYPT_WORK_FACTOR"] = "4"
os.environ.pop("ACCESS_TOKEN_EXPIRE_MINUTES", None)

from typing import Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from nutrition_portal.app import app
from nutrition_portal.auth.database import get_engine, get_session_factory, init_db
from nutrition_portal.auth.models import ActiveFlag, Role, User, detail_model_for, utcnow
from nutrition_portal.auth.password import hash_password


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite:///:memory:"

STRONG_PASSWORD = "Secret123"


@pytest.fixture(scope="function")
def test_engine():
    """Create a fresh test database engine for each test."""
    engine = get_engine(TEST_DATABASE_URL)
    init_db(engine)

    yield engine

    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    with Session(test_engine) as session:
        yield session


def use_test_engine(engine) -> None:
    """Point the app at the test engine."""
    app.state.db_engine = engine
    app.state.db_session_factory = get_session_factory(engine)


@pytest.fixture(scope="function")
def client(test_engine) -> Generator[TestClient, None, None]:
    """Create a test client with fresh database."""
    with TestClient(app) as c:
        # the lifespan installs its own engine; swap ours in afterwards
        use_test_engine(test_engine)
        yield c


def create_account(
    db: Session,
    username: str,
    password: str = STRONG_PASSWORD,
    role: Role = Role.ADMIN,
    is_active: ActiveFlag = ActiveFlag.YES,
    details: Optional[dict] = None,
) -> User:
    """Insert an account directly, optionally with its officer details."""
    now = utcnow()
    user = User(
        username=username,
        password_hash=hash_password(password),
        role=role,
        is_active=is_active,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    if details is not None:
        model = detail_model_for(role)
        db.add(model(user_id=user.id, created_at=now, updated_at=now, **details))
        db.commit()

    return user


def sample_details(nic_number: str = "200012345678", full_name: str = "Test Officer") -> dict:
    return {"full_name": full_name, "nic_number": nic_number}


@pytest.fixture(scope="function")
def test_admin(db_session) -> User:
    return create_account(db_session, "admin")


@pytest.fixture(scope="function")
def test_deo(db_session) -> User:
    """Active DEO with completed details."""
    return create_account(
        db_session, "deo0", role=Role.DEO,
        details=sample_details("199011112222", "Deo Zero"),
    )


@pytest.fixture(scope="function")
def test_vo(db_session) -> User:
    """Active VO with completed details."""
    return create_account(
        db_session, "vo0", role=Role.VO,
        details=sample_details("198533334444", "Vo Zero"),
    )


def login_user(client: TestClient, username: str, password: str = STRONG_PASSWORD) -> Optional[dict]:
    """Helper function to login and return the response body."""
    response = client.post(
        "/api/auth/login",
        json={"username": username, "password": password},
    )
    return response.json() if response.status_code == 200 else None


def auth_headers(token: str) -> dict:
    """Create authorization headers for authenticated requests."""
    return {"Authorization": f"Bearer {token}"}


def login_headers(client: TestClient, username: str, password: str = STRONG_PASSWORD) -> dict:
    body = login_user(client, username, password)
    assert body is not None, f"login failed for {username}"
    return auth_headers(body["token"])


@pytest.fixture(scope="function")
def admin_headers(client, test_admin) -> dict:
    return login_headers(client, "admin")
