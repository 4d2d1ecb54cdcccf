"""Shared fixtures: a throwaway SQLite database and an HTTP test client."""
import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="focusflow-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["GROQ_API_KEY"] = ""
os.environ["ZAI_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete

import main


@pytest.fixture
def client():
    """Test client over an emptied database."""
    with main.engine.begin() as conn:
        for table in reversed(main.metadata.sorted_tables):
            conn.execute(delete(table))
    return TestClient(main.app)


@pytest.fixture
def signup(client):
    """Register a user and return bearer headers for them."""
    def _signup(email="ada@example.com", password="secret123", name=None):
        resp = client.post("/api/auth/signup", json={"email": email, "password": password, "name": name})
        assert resp.status_code == 201, resp.text
        return {"Authorization": f"Bearer {resp.json()['token']}"}
    return _signup


@pytest.fixture
def auth(signup):
    return signup()


@pytest.fixture
def make_task(client, auth):
    def _make(title="Write report", headers=None, **fields):
        resp = client.post("/api/tasks", json={"title": title, **fields}, headers=headers or auth)
        assert resp.status_code == 201, resp.text
        return resp.json()
    return _make
