"""Shared pytest fixtures for marketplace tests."""

import os
import sys
import tempfile
from pathlib import Path

import mongomock
import pytest
from fastapi.testclient import TestClient

# Add the project root to Python path for imports
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

# main builds a module-level app on import; keep its upload dir out of the tree
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="marketplace-uploads-"))

from config import Settings  # noqa: E402
from main import create_app  # noqa: E402

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pw"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        jwt_secret="test-secret",
        upload_dir=str(tmp_path / "uploads"),
        max_upload_bytes=1024,
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture
def db():
    """In-memory MongoDB database."""
    return mongomock.MongoClient()["marketplace_test"]


@pytest.fixture
def client(settings, db):
    with TestClient(create_app(settings, db)) as c:
        yield c


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register_and_login(client: TestClient, username: str, email: str, password: str = "pw123",
                       role: str = None) -> dict:
    body = {"username": username, "email": email, "password": password}
    if role:
        body["role"] = role
    assert client.post("/api/users/register", json=body).status_code == 201
    resp = client.post("/api/users/login", json={"email": email, "password": password})
    assert resp.status_code == 200
    return resp.json()


@pytest.fixture
def admin_token(client) -> str:
    resp = client.post("/api/users/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    return resp.json()["token"]


@pytest.fixture
def seller(client) -> dict:
    return register_and_login(client, "sam", "sam@example.com", role="seller")


@pytest.fixture
def other_seller(client) -> dict:
    return register_and_login(client, "olga", "olga@example.com", role="seller")


@pytest.fixture
def buyer(client) -> dict:
    return register_and_login(client, "alice", "alice@example.com")


@pytest.fixture
def listing(client, seller) -> dict:
    """A pending listing owned by `seller`."""
    resp = client.post(
        "/api/products",
        data={"name": "Lamp", "category": "home", "price": "19.5", "description": "Desk lamp", "stock": "3"},
        headers=auth(seller["token"]),
    )
    assert resp.status_code == 201
    return resp.json()["product"]
