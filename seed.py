"""
Create the default admin account.

Usage:
    python seed.py

Reads ADMIN_NAME / ADMIN_EMAIL / ADMIN_PASSWORD from the environment. Does
nothing when an admin already exists.
"""
import logging
import os
import sys

from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import PyMongoError

from auth import claim_bootstrap_admin, get_password_hash, normalize_email, release_bootstrap_admin
from database import create_document, db, ensure_indexes
from schemas import User

ADMIN_NAME = os.getenv("ADMIN_NAME", "Admin")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

logger = logging.getLogger(__name__)


def create_admin(database: Database, name: str, email: str, password: str) -> bool:
    """Insert the admin user; returns False if an admin exists or is being elected."""
    admin = User(
        name=name,
        email=normalize_email(email),
        password_hash=get_password_hash(password),
        role="admin",
    )
    user_id = ObjectId()
    if not claim_bootstrap_admin(database, user_id):
        return False
    try:
        create_document(database, "user", {**admin.model_dump(), "_id": user_id})
    except Exception:
        release_bootstrap_admin(database, user_id)
        raise
    return True


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    try:
        ensure_indexes(db)
        if create_admin(db, ADMIN_NAME, ADMIN_EMAIL, ADMIN_PASSWORD):
            logger.info("First admin created: %s", ADMIN_EMAIL)
        else:
            logger.info("Admin already exists or is being created")
    except PyMongoError:
        logger.exception("Seeding admin failed")
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
