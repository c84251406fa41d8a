from fastapi.testclient import TestClient

from database import get_db
from main import app


def test_root(client):
    assert client.get("/").json() == {"message": "Shoe Catalog API is running"}


def test_database_diagnostics(client, make_catalog):
    make_catalog()

    body = client.get("/test").json()

    assert body["connection_status"] == "Connected"
    assert body["database_name"] == "shoe_catalog_test"
    assert "catalog" in body["collections"]


def test_unhandled_error_returns_500_with_message():
    def broken_db():
        raise RuntimeError("database is on fire")

    app.dependency_overrides[get_db] = broken_db
    try:
        response = TestClient(app, raise_server_exceptions=False).get("/api/catalogs")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"message": "Internal Server Error", "detail": "database is on fire"}
