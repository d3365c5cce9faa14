import logging
from typing import Optional, Union

from fastapi import Depends, Request, status
from fastapi.responses import JSONResponse

from furry_gallery.auth_utils import get_user_from_token
from furry_gallery.config import LEGACY_TOKEN_COOKIE, get_settings
from furry_gallery.db import Database, get_db
from furry_gallery.exceptions import AuthenticationError, AuthorizationError
from furry_gallery.schemas import AuthenticationResult, User, UserRole

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


# PUBLIC_INTERFACE
def get_token_from_request(request: Request) -> Optional[str]:
    """Token from the primary cookie, the legacy cookie, or the Authorization header, in that order."""
    cookie_token = request.cookies.get(get_settings().jwt_storage_key)
    if cookie_token:
        return cookie_token

    legacy_token = request.cookies.get(LEGACY_TOKEN_COOKIE)
    if legacy_token:
        return legacy_token

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith(BEARER_PREFIX):
        return auth_header[len(BEARER_PREFIX):].strip() or None

    return None


# PUBLIC_INTERFACE
def authenticate_request(request: Request, db: Database) -> AuthenticationResult:
    """Resolve the request's token to a user."""
    token = get_token_from_request(request)
    if not token:
        return AuthenticationResult(authenticated=False, message="Nejste přihlášeni")

    result = get_user_from_token(db, token)
    if not result.success or result.user is None:
        return AuthenticationResult(authenticated=False, message=result.message or "Neplatný token")

    return AuthenticationResult(authenticated=True, user=result.user)


def _as_id(value: Union[int, float, str, None]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return int(number) if number.is_integer() else None


# PUBLIC_INTERFACE
def is_admin(user: User) -> bool:
    """True for accounts with the admin role."""
    return user.role == UserRole.admin.value


# PUBLIC_INTERFACE
def is_photographer(user: User) -> bool:
    """True when the user has a linked photographer profile."""
    return user.photographer_id is not None


# PUBLIC_INTERFACE
def is_organizer(user: User) -> bool:
    """True when the user has a linked organizer profile."""
    return user.organizer_id is not None


# PUBLIC_INTERFACE
def can_edit_photographer(user: User, photographer_id: Union[int, float, str]) -> bool:
    """Admins edit any photographer profile, everyone else only their own."""
    target = _as_id(photographer_id)
    return is_admin(user) or (target is not None and user.photographer_id == target)


# PUBLIC_INTERFACE
def can_edit_organizer(user: User, organizer_id: Union[int, float, str, None]) -> bool:
    """Admins edit any organizer profile, everyone else only their own."""
    target = _as_id(organizer_id)
    return is_admin(user) or (target is not None and user.organizer_id == target)


# PUBLIC_INTERFACE
def create_auth_error_response(message: str, status_code: int = status.HTTP_401_UNAUTHORIZED) -> JSONResponse:
    """401 JSON envelope for a missing or invalid login."""
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


# PUBLIC_INTERFACE
def create_permission_error_response(
    message: str = "Nemáte oprávnění k této akci",
    status_code: int = status.HTTP_403_FORBIDDEN,
) -> JSONResponse:
    """403 JSON envelope for an authenticated user lacking permission."""
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


# PUBLIC_INTERFACE
def get_current_user(request: Request, db: Database = Depends(get_db)) -> User:
    """Dependency that returns the authenticated user or fails with 401."""
    result = authenticate_request(request, db)
    if not result.authenticated or result.user is None:
        raise AuthenticationError(result.message or "Nejste přihlášeni")
    return result.user


# PUBLIC_INTERFACE
def get_optional_user(request: Request, db: Database = Depends(get_db)) -> Optional[User]:
    """Dependency for public routes that personalise output when a valid token is present."""
    if get_token_from_request(request) is None:
        return None
    result = authenticate_request(request, db)
    return result.user if result.authenticated else None


# PUBLIC_INTERFACE
def require_admin(user: User = Depends(get_current_user)) -> User:
    """Dependency that only lets admins through."""
    if not is_admin(user):
        raise AuthorizationError("Tuto akci může provést pouze administrátor")
    return user
