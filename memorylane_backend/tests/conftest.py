import os
import tempfile

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Keep uploads out of the working tree; must be set before settings load.
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="memorylane-uploads-"))
os.environ.setdefault("STORAGE_BACKEND", "memory")

from memorylane_backend.api.main import app
from memorylane_backend.api.deps import get_storage
from memorylane_backend.storage import MemStorage
from memorylane_backend.storage.database import DatabaseStorage
from memorylane_database.models import Base

@pytest.fixture(scope="session")
def sqlite_url():
    """Fixture to provide a SQLite in-memory database URL for testing."""
    return "sqlite://"

@pytest.fixture(scope="session")
def engine(sqlite_url):
    """Fixture for a persistent in-memory SQLite engine for the test session."""
    return create_engine(
        sqlite_url, connect_args={"check_same_thread": False}, poolclass=StaticPool
    )

@pytest.fixture
def tables(engine):
    """Create tables for one test and drop them afterwards."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def db_storage(engine, tables):
    """DatabaseStorage over the in-memory SQLite engine."""
    return DatabaseStorage(sessionmaker(autocommit=False, autoflush=False, bind=engine))

@pytest.fixture
def mem_storage():
    return MemStorage()

@pytest.fixture(params=["memory", "database"])
def storage(request):
    """Runs a storage test once per backing."""
    return request.getfixturevalue("mem_storage" if request.param == "memory" else "db_storage")

@pytest.fixture
def client(mem_storage):
    """Fixture for FastAPI TestClient with a fresh in-memory storage."""
    app.dependency_overrides[get_storage] = lambda: mem_storage

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()

@pytest.fixture
def user_data():
    """Returns default user data for registration."""
    return {
        "username": "alice",
        "password": "alicepassword123",
        "display_name": "Alice",
    }

@pytest.fixture
def second_user_data():
    """Returns a second user's data."""
    return {
        "username": "bob",
        "password": "bobpassword456",
    }

def register_and_auth(client, username, password):
    """Helper for registering then logging in to get JWT token and user id."""
    r1 = client.post("/api/register", json={"username": username, "password": password})
    assert r1.status_code == 201 or r1.status_code == 409

    r2 = client.post("/api/login", data={"username": username, "password": password})
    assert r2.status_code == 200
    token = r2.json()["access_token"]
    me = client.get("/api/user", headers={"Authorization": f"Bearer {token}"}).json()
    return token, me["id"]

@pytest.fixture
def auth(client, user_data):
    """Returns ({'Authorization': 'Bearer <token>'}, user_id) for the default user."""
    token, user_id = register_and_auth(client, user_data["username"], user_data["password"])
    return {"Authorization": f"Bearer {token}"}, user_id

@pytest.fixture
def second_auth(client, second_user_data):
    """Returns (auth header, user_id) for the second user."""
    token, user_id = register_and_auth(client, second_user_data["username"], second_user_data["password"])
    return {"Authorization": f"Bearer {token}"}, user_id

@pytest.fixture
def third_auth(client):
    token, user_id = register_and_auth(client, "carol", "carolpassword789")
    return {"Authorization": f"Bearer {token}"}, user_id
