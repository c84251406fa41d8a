"""
Shared pytest fixtures: an in-memory MongoDB wired into the app and
ready-made admin / user credentials.
"""
import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app

PASSWORD = "secret123"


@pytest.fixture
def test_db():
    """Fresh in-memory database with the production indexes."""
    database = mongomock.MongoClient()["shoe_catalog_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(test_db):
    app.dependency_overrides[get_db] = lambda: test_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, name, email, password=PASSWORD):
    return client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password},
    )


def login(client, email, password=PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(client):
    assert register(client, "Ali Valiyev", "ali@example.com").json()["user"]["role"] == "admin"
    return bearer(login(client, "ali@example.com").json()["access_token"])


@pytest.fixture
def user_headers(client, admin_headers):
    assert register(client, "Vali Aliyev", "vali@example.com").json()["user"]["role"] == "user"
    return bearer(login(client, "vali@example.com").json()["access_token"])


@pytest.fixture
def make_catalog(client, admin_headers):
    def _make(shoe_type="bertci", season="yozgi"):
        response = client.post(
            "/api/catalogs",
            json={"type": shoe_type, "season": season},
            headers=admin_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()
    return _make


@pytest.fixture
def make_product(client, admin_headers):
    def _make(name="Nike Air Max 270", shoe_type="bertci", season="yozgi", **extra):
        body = {"name": name, "type": shoe_type, "season": season, **extra}
        response = client.post("/api/products", json=body, headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _make
