# =============================================================================
# tests/test_api_auth.py - Request authentication and permission checks
# =============================================================================

import json

import pytest
from starlette.requests import Request

from furry_gallery.api_auth import (
    authenticate_request,
    can_edit_organizer,
    can_edit_photographer,
    create_auth_error_response,
    create_permission_error_response,
    get_token_from_request,
    is_admin,
    is_organizer,
    is_photographer,
    require_admin,
)
from furry_gallery.auth_utils import generate_token
from furry_gallery.config import get_settings
from furry_gallery.exceptions import AuthorizationError
from furry_gallery.schemas import TokenPayload

from tests.conftest import make_user


def build_request(cookies=None, authorization=None) -> Request:
    headers = []
    if cookies:
        cookie_header = "; ".join(f"{k}={v}" for k, v in cookies.items())
        headers.append((b"cookie", cookie_header.encode()))
    if authorization:
        headers.append((b"authorization", authorization.encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers, "query_string": b""})


class TestGetTokenFromRequest:
    """Token lookup order: primary cookie, legacy cookie, bearer header."""

    def test_primary_cookie_wins(self):
        request = build_request(
            cookies={get_settings().jwt_storage_key: "primary", "auth_token": "legacy"},
            authorization="Bearer header",
        )

        assert get_token_from_request(request) == "primary"

    def test_legacy_cookie_before_header(self):
        request = build_request(cookies={"auth_token": "legacy"}, authorization="Bearer header")

        assert get_token_from_request(request) == "legacy"

    def test_bearer_header(self):
        assert get_token_from_request(build_request(authorization="Bearer header")) == "header"

    def test_non_bearer_header_is_ignored(self):
        assert get_token_from_request(build_request(authorization="Basic Zm9vOmJhcg==")) is None

    def test_nothing(self):
        assert get_token_from_request(build_request()) is None


class TestAuthenticateRequest:
    """Tests for authenticate_request."""

    def test_without_token(self, user_store):
        result = authenticate_request(build_request(), user_store)

        assert not result.authenticated
        assert result.message == "Nejste přihlášeni"

    def test_with_valid_bearer_token(self, user_store):
        row = user_store.add("foxy", "foxy@example.com", "Secret123")
        token = generate_token(TokenPayload.for_user(row))

        result = authenticate_request(build_request(authorization=f"Bearer {token}"), user_store)

        assert result.authenticated
        assert result.user.id == row["id"]

    def test_with_invalid_token(self, user_store):
        result = authenticate_request(build_request(authorization="Bearer junk"), user_store)

        assert not result.authenticated
        assert result.user is None


class TestRoles:
    """Tests for the role predicates."""

    def test_admin(self):
        assert is_admin(make_user(role="admin"))
        assert not is_admin(make_user())

    def test_profiles(self):
        user = make_user(photographer_id=4)

        assert is_photographer(user)
        assert not is_organizer(user)
        assert is_organizer(make_user(organizer_id=2))

    def test_require_admin(self):
        admin = make_user(role="admin")

        assert require_admin(admin) is admin
        with pytest.raises(AuthorizationError):
            require_admin(make_user())

    def test_helpers_are_documented(self):
        helpers = [
            is_admin,
            is_photographer,
            is_organizer,
            create_auth_error_response,
            create_permission_error_response,
        ]

        assert all(helper.__doc__ for helper in helpers)



class TestCanEdit:
    """Ownership checks for profile edits."""

    def test_admin_edits_any_photographer(self):
        admin = make_user(role="admin")

        assert can_edit_photographer(admin, 42)
        assert can_edit_photographer(admin, "not-a-number")

    def test_owner_edits_own_photographer_profile(self):
        user = make_user(photographer_id=5)

        assert can_edit_photographer(user, 5)
        assert can_edit_photographer(user, "5")
        assert not can_edit_photographer(user, 6)

    def test_float_ids_are_coerced(self):
        user = make_user(photographer_id=5)

        assert can_edit_photographer(user, 5.0)
        assert can_edit_photographer(user, "5.0")
        assert not can_edit_photographer(user, 5.5)
        assert not can_edit_photographer(user, "abc")


    def test_user_without_profile_edits_nothing(self):
        user = make_user()

        assert not can_edit_photographer(user, 1)
        assert not can_edit_organizer(user, 1)
        assert not can_edit_organizer(user, None)

    def test_organizer_ownership(self):
        user = make_user(organizer_id=9)

        assert can_edit_organizer(user, " 9 ")
        assert not can_edit_organizer(user, 10)
        assert can_edit_organizer(make_user(role="admin"), 10)


class TestErrorResponses:
    """Tests for the JSON error response builders."""

    def test_auth_error_response(self):
        response = create_auth_error_response("Nejste přihlášeni")

        assert response.status_code == 401
        assert json.loads(response.body) == {"success": False, "message": "Nejste přihlášeni"}

    def test_permission_error_response_default(self):
        response = create_permission_error_response()

        assert response.status_code == 403
        assert json.loads(response.body)["message"] == "Nemáte oprávnění k této akci"
