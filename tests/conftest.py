# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# Environment variables are set before the package is imported, because
# settings are read once and cached. Route tests run against a mocked
# Database; auth round-trips use an in-memory user table.
# =============================================================================

import os

os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "false")

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from furry_gallery.api_auth import get_current_user
from furry_gallery.auth_utils import hash_password
from furry_gallery.db import Database, get_db
from furry_gallery.main import app
from furry_gallery.schemas import User

PUBLIC_USER_FIELDS = (
    "id",
    "username",
    "email",
    "is_active",
    "photographer_id",
    "organizer_id",
    "avatar_id",
    "role",
    "created_at",
)


class FakeUserStore:
    """
    Stands in for Database with a dict of users.

    Understands exactly the statements the account functions issue; anything
    else fails the test loudly.
    """

    def __init__(self):
        self.users: Dict[int, Dict[str, Any]] = {}
        self._next_id = 1

    def add(self, username: str, email: str, password: str, **extra: Any) -> Dict[str, Any]:
        row = {
            "id": self._next_id,
            "username": username,
            "email": email,
            "password_hash": hash_password(password),
            "is_active": True,
            "photographer_id": None,
            "organizer_id": None,
            "avatar_id": None,
            "role": "user",
            "created_at": datetime.now(timezone.utc),
        }
        row.update(extra)
        self.users[row["id"]] = row
        self._next_id += 1
        return row

    def _find(self, field_name: str, value: Any) -> Optional[Dict[str, Any]]:
        for row in self.users.values():
            if row[field_name] == value:
                return row
        return None

    @staticmethod
    def _public(row: Dict[str, Any]) -> Dict[str, Any]:
        return {k: row[k] for k in PUBLIC_USER_FIELDS}

    def fetch_one(self, query: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        q = " ".join(query.split())
        params = list(params or [])
        if q.startswith("SELECT id FROM users WHERE username = %s"):
            row = self._find("username", params[0])
            return {"id": row["id"]} if row else None
        if q.startswith("SELECT id FROM users WHERE email = %s"):
            row = self._find("email", params[0])
            return {"id": row["id"]} if row else None
        if "password_hash FROM users WHERE username = %s" in q:
            row = self._find("username", params[0])
            return dict(self._public(row), password_hash=row["password_hash"]) if row else None
        if q.startswith("SELECT password_hash FROM users WHERE id = %s"):
            row = self.users.get(params[0])
            return {"password_hash": row["password_hash"]} if row else None
        if "FROM users WHERE id = %s" in q:
            row = self.users.get(params[0])
            return self._public(row) if row else None
        raise AssertionError(f"Unexpected query: {q}")

    def execute_returning_one(self, query: str, params: Optional[List[Any]] = None) -> Dict[str, Any]:
        q = " ".join(query.split())
        if q.startswith("INSERT INTO users (username, email, password_hash)"):
            username, email, password_hash = params
            row = self.add(username, email, "unused")
            row["password_hash"] = password_hash
            return {"id": row["id"]}
        raise AssertionError(f"Unexpected query: {q}")

    def execute(self, query: str, params: Optional[List[Any]] = None) -> int:
        q = " ".join(query.split())
        if q.startswith("UPDATE users SET password_hash = %s WHERE id = %s"):
            password_hash, user_id = params
            if user_id not in self.users:
                return 0
            self.users[user_id]["password_hash"] = password_hash
            return 1
        raise AssertionError(f"Unexpected query: {q}")


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def user_store():
    """Empty in-memory user table."""
    return FakeUserStore()


@pytest.fixture
def mock_db():
    """Database double; configure fetch_one/fetch_all return values per test."""
    db = MagicMock(spec=Database)
    db.fetch_all.return_value = []
    db.fetch_one.return_value = None
    return db


@pytest.fixture
def mock_tx(mock_db):
    """Session handed out by mock_db.transaction()."""
    tx = MagicMock()
    mock_db.transaction.return_value.__enter__.return_value = tx
    mock_db.transaction.return_value.__exit__.return_value = False
    return tx


@pytest.fixture
def client(mock_db):
    """TestClient whose routes see mock_db."""
    app.dependency_overrides[get_db] = lambda: mock_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_client(user_store):
    """TestClient backed by the in-memory user table."""
    app.dependency_overrides[get_db] = lambda: user_store
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(**overrides: Any) -> User:
    data = {"id": 1, "username": "foxy", "email": "foxy@example.com", "role": "user"}
    data.update(overrides)
    return User(**data)


@pytest.fixture
def login_as():
    """Make protected routes see the given user without a token."""

    def _login(**overrides: Any) -> User:
        user = make_user(**overrides)
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    return _login
