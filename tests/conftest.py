"""
Shared test fixtures: SQLite test database, test client, auth helpers.
"""

import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set env before importing app modules
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["RESEND_API_KEY"] = ""
os.environ["GEMINI_API_KEY"] = ""

from calcost.authorization import AuthorizationPolicy, get_authorization_policy
from calcost.database import Base, get_db, get_session_factory
from calcost.main import app


TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

WORKSHOP_EMAIL = "taller@uniformes.bo"
PREMIUM_EMAIL = "premium@uniformes.bo"

TEST_POLICY = AuthorizationPolicy(
    premium_emails=frozenset({PREMIUM_EMAIL}),
    enterprise_emails=frozenset({WORKSHOP_EMAIL}),
    free_project_limit=5,
)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db
app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
app.dependency_overrides[get_authorization_policy] = lambda: TEST_POLICY


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def db():
    """Direct database session for test setup/assertions."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def policy():
    """Swap the authorization policy for one test: policy(admin_user_ids=...)."""
    def _set(**kwargs):
        custom = AuthorizationPolicy(
            premium_emails=kwargs.pop("premium_emails", TEST_POLICY.premium_emails),
            enterprise_emails=kwargs.pop("enterprise_emails", TEST_POLICY.enterprise_emails),
            **kwargs,
        )
        app.dependency_overrides[get_authorization_policy] = lambda: custom
        return custom

    yield _set
    app.dependency_overrides[get_authorization_policy] = lambda: TEST_POLICY


def _register(client, email):
    response = client.post("/api/auth/register", json={
        "email": email,
        "password": "strongpassword123",
        "name": "Confecciones Test",
    })
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def registered_user(client):
    """Free-plan account: registration payload (tokens + user)."""
    return _register(client, "test@confecciones.bo")


@pytest.fixture
def auth_headers(registered_user):
    """Register a free-plan user and return auth headers."""
    return {"Authorization": f"Bearer {registered_user['access_token']}"}


@pytest.fixture
def workshop_user(client):
    """Enterprise account with the workshop (online orders) capability."""
    return _register(client, WORKSHOP_EMAIL)


@pytest.fixture
def workshop_headers(workshop_user):
    return {"Authorization": f"Bearer {workshop_user['access_token']}"}


@pytest.fixture
def other_headers(client):
    """A second, unrelated free-plan account."""
    data = _register(client, "otro@confecciones.bo")
    return {"Authorization": f"Bearer {data['access_token']}"}
