from auth import BOOTSTRAP_SENTINEL
from conftest import register
from seed import create_admin


def test_seed_creates_admin_once(test_db):
    assert create_admin(test_db, "Admin", "admin@example.com", "admin123") is True
    assert create_admin(test_db, "Admin", "admin2@example.com", "admin123") is False

    admins = list(test_db["user"].find({"role": "admin"}))
    assert [a["email"] for a in admins] == ["admin@example.com"]


def test_seeded_admin_blocks_bootstrap_rule(client, test_db):
    create_admin(test_db, "Admin", "admin@example.com", "admin123")

    response = register(client, "Ali Valiyev", "ali@example.com")

    assert response.json()["user"]["role"] == "user"


def test_seeded_admin_can_log_in(client, test_db):
    create_admin(test_db, "Admin", "admin@example.com", "admin123")

    response = client.post(
        "/api/auth/login", json={"email": "admin@example.com", "password": "admin123"}
    )

    assert response.status_code == 200


def test_seed_recovers_from_leftover_claim(test_db):
    test_db["meta"].insert_one({"_id": BOOTSTRAP_SENTINEL})

    assert create_admin(test_db, "Admin", "admin@example.com", "admin123") is True
    assert test_db["user"].find_one({"email": "admin@example.com"})["role"] == "admin"
