# =============================================================================
# tests/test_routes_auth.py - /api/auth, /api/users and health endpoints
# =============================================================================

import psycopg2

from furry_gallery.config import get_settings
from furry_gallery.db import get_db
from furry_gallery.main import app

REGISTER_URL = "/api/auth/register"
LOGIN_URL = "/api/auth/login"


def register(client, username="foxy", email="foxy@example.com", password="Secret123"):
    return client.post(REGISTER_URL, json={"username": username, "email": email, "password": password})


class TestRegisterRoute:
    """Tests for POST /api/auth/register."""

    def test_short_username(self, auth_client):
        response = register(auth_client, username="ab")

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Uživatelské jméno musí mít alespoň 3 znaky"}

    def test_success_then_duplicate(self, auth_client):
        """A second registration with the same username is refused."""
        first = register(auth_client)

        assert first.status_code == 201
        assert first.json()["success"] is True
        assert isinstance(first.json()["userId"], int)

        second = register(auth_client, email="other@example.com")

        assert second.status_code == 400
        assert "již obsazeno" in second.json()["message"]

    def test_missing_fields(self, auth_client):
        response = auth_client.post(REGISTER_URL, json={"username": "foxy"})

        assert response.status_code == 400
        assert response.json()["message"] == "Chybějící povinné údaje"

    def test_bad_email(self, auth_client):
        response = register(auth_client, email="foxy-at-example")

        assert response.status_code == 400
        assert response.json()["message"] == "Neplatný formát emailu"

    def test_short_password(self, auth_client):
        response = register(auth_client, password="12345")

        assert response.status_code == 400
        assert response.json()["message"] == "Heslo musí mít alespoň 6 znaků"


class TestLoginRoute:
    """Tests for login, logout and /me."""

    def test_login_sets_cookie_and_me_works(self, auth_client, user_store):
        user_store.add("foxy", "foxy@example.com", "Secret123")

        response = auth_client.post(LOGIN_URL, json={"username": "foxy", "password": "Secret123"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["token"]
        assert body["user"]["username"] == "foxy"
        assert "password_hash" not in body["user"]
        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith(f"{get_settings().jwt_storage_key}=")
        assert "httponly" in set_cookie.lower()

        me = auth_client.get("/api/auth/me")

        assert me.status_code == 200
        assert me.json()["user"]["email"] == "foxy@example.com"

    def test_bearer_header_works_for_me(self, auth_client, user_store):
        user_store.add("foxy", "foxy@example.com", "Secret123")
        token = auth_client.post(LOGIN_URL, json={"username": "foxy", "password": "Secret123"}).json()["token"]
        auth_client.cookies.clear()

        me = auth_client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert me.status_code == 200

    def test_wrong_password(self, auth_client, user_store):
        user_store.add("foxy", "foxy@example.com", "Secret123")

        response = auth_client.post(LOGIN_URL, json={"username": "foxy", "password": "nope"})

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Neplatné uživatelské jméno nebo heslo"}
        assert "set-cookie" not in response.headers

    def test_me_without_token(self, auth_client):
        response = auth_client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Nejste přihlášeni"}

    def test_logout_clears_both_cookies(self, auth_client):
        response = auth_client.post("/api/auth/logout")

        assert response.status_code == 200
        cookies = response.headers.get_list("set-cookie")
        assert any(c.startswith(f"{get_settings().jwt_storage_key}=") for c in cookies)
        assert any(c.startswith("auth_token=") for c in cookies)


class TestUserRoutes:
    """Tests for /api/users."""

    def test_list_filters_roles_and_search(self, client, mock_db):
        mock_db.fetch_one.return_value = {"count": 0}

        response = client.get("/api/users?role=admin&role=user&username=fox&email=fox")

        assert response.status_code == 200
        query, params = mock_db.fetch_all.call_args[0]
        assert "role IN (%s, %s)" in query
        assert "(username ILIKE %s OR email ILIKE %s)" in query
        assert params == ["admin", "user", "%fox%", "%fox%", 10, 0]

    def test_update_other_user_forbidden(self, client, login_as):
        login_as(id=1)

        response = client.put("/api/users/2", json={"username": "foxy", "email": "new@example.com"})

        assert response.status_code == 403

    def test_update_email_taken(self, client, mock_db, login_as):
        login_as(id=1)
        mock_db.fetch_one.side_effect = [None, {"id": 2}]

        response = client.put("/api/users/1", json={"username": "foxy", "email": "taken@example.com"})

        assert response.status_code == 400
        assert response.json()["message"] == "Email je již používán jiným uživatelem"

    def test_update_username_taken(self, client, mock_db, login_as):
        login_as(id=1)
        mock_db.fetch_one.return_value = {"id": 2}

        response = client.put("/api/users/1", json={"username": "wolfy", "email": "foxy@example.com"})

        assert response.status_code == 400
        assert response.json()["message"] == "Toto uživatelské jméno je již používáno"
        query, params = mock_db.fetch_one.call_args[0]
        assert query == "SELECT id FROM users WHERE username = %s AND id <> %s"
        assert params == ["wolfy", 1]

    def test_rename(self, client, mock_db, login_as):
        """Username and email are written together."""
        login_as(id=1)
        mock_db.fetch_one.side_effect = [
            None,
            None,
            {"id": 1, "username": "renamed", "email": "new@example.com", "role": "user"},
        ]

        response = client.put("/api/users/1", json={"username": " renamed ", "email": "new@example.com"})

        assert response.status_code == 200
        assert response.json()["data"]["username"] == "renamed"
        query, params = mock_db.fetch_one.call_args[0]
        assert query.startswith("UPDATE users SET username = %s, email = %s WHERE id = %s")
        assert params == ["renamed", "new@example.com", 1]

    def test_update_requires_both_fields(self, client, login_as):
        login_as(id=1)

        response = client.put("/api/users/1", json={"email": "new@example.com"})

        assert response.status_code == 400
        assert response.json()["message"] == "Uživatelské jméno a e-mail jsou povinné údaje"

    def test_update_short_username(self, client, login_as):
        login_as(id=1)

        response = client.put("/api/users/1", json={"username": "ab", "email": "new@example.com"})

        assert response.status_code == 400
        assert response.json()["message"] == "Uživatelské jméno musí mít alespoň 3 znaky"

    def test_update_invalid_email_lists_errors(self, client, login_as):
        login_as(id=1)

        response = client.put("/api/users/1", json={"username": "foxy", "email": "not-an-email"})

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Neplatná vstupní data"
        assert body["errors"][0]["loc"] == ["body", "email"]

    def test_change_password_of_other_user_forbidden(self, client, login_as):
        login_as(id=1)

        response = client.put(
            "/api/users/2/password",
            json={"currentPassword": "Secret123", "newPassword": "NewSecret456"},
        )

        assert response.status_code == 403

    def test_change_password_weak(self, client, login_as):
        login_as(id=1)

        response = client.put(
            "/api/users/1/password",
            json={"currentPassword": "Secret123", "newPassword": "alllowercase"},
        )

        assert response.status_code == 400
        assert "velké písmeno" in response.json()["message"]

    def test_change_password_end_to_end(self, auth_client, user_store):
        row = user_store.add("foxy", "foxy@example.com", "Secret123")
        auth_client.post(LOGIN_URL, json={"username": "foxy", "password": "Secret123"})

        response = auth_client.put(
            f"/api/users/{row['id']}/password",
            json={"currentPassword": "Secret123", "newPassword": "NewSecret456"},
        )

        assert response.status_code == 200
        assert auth_client.post(LOGIN_URL, json={"username": "foxy", "password": "NewSecret456"}).status_code == 200


class TestHealth:
    """Tests for the health endpoints."""

    def test_root(self, client):
        assert client.get("/").json() == {"message": "Healthy"}

    def test_database_up(self, client, mock_db):
        mock_db.ping.return_value = {"connected": True, "timestamp": "2024-01-01T00:00:00"}

        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["database"]["connected"] is True

    def test_database_down(self, client, mock_db):
        mock_db.ping.side_effect = psycopg2.OperationalError("connection refused")

        response = client.get("/api/health")

        assert response.status_code == 503
        assert response.json()["database"]["connected"] is False


class TestErrorEnvelope:
    """Unhandled failures become the generic 500 envelope."""

    def test_database_error_hides_details(self, client, mock_db):
        mock_db.fetch_all.side_effect = psycopg2.OperationalError("password authentication failed")

        response = client.get("/api/tags")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Při zpracování požadavku došlo k chybě"}

    def test_unexpected_error(self, mock_db):
        from fastapi.testclient import TestClient

        mock_db.fetch_all.side_effect = RuntimeError("boom")
        app.dependency_overrides[get_db] = lambda: mock_db
        try:
            response = TestClient(app, raise_server_exceptions=False).get("/api/tags")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["success"] is False
