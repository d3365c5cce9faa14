import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse

from furry_gallery.api_auth import get_current_user
from furry_gallery.auth_utils import login_user, register_user
from furry_gallery.config import LEGACY_TOKEN_COOKIE, get_settings
from furry_gallery.db import Database, get_db
from furry_gallery.exceptions import AuthenticationError, ValidationError
from furry_gallery.schemas import APIMessage, LoginRequest, RegisterRequest, User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Register")
def register(payload: RegisterRequest, db: Database = Depends(get_db)) -> Dict[str, Any]:
    """Create a new account. Returns the new user id."""
    result = register_user(db, payload.username, payload.email, payload.password)
    if not result.success:
        raise ValidationError(result.message or "Při registraci došlo k chybě")
    return {"success": True, "userId": result.userId}


@router.post("/login", summary="Login")
def login(payload: LoginRequest, db: Database = Depends(get_db)) -> JSONResponse:
    """Authenticate, set the auth cookie and return the token with the user."""
    result = login_user(db, payload.username, payload.password)
    if not result.success or result.token is None or result.user is None:
        raise AuthenticationError(result.message or "Neplatné uživatelské jméno nebo heslo")

    settings = get_settings()
    response = JSONResponse(
        content={
            "success": True,
            "token": result.token,
            "user": result.user.model_dump(mode="json"),
        }
    )
    response.set_cookie(
        key=settings.jwt_storage_key,
        value=result.token,
        max_age=settings.jwt_expires_minutes * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )
    logger.info(f"User {result.user.username} logged in")
    return response


@router.post("/logout", response_model=APIMessage, summary="Logout")
def logout(response: Response) -> APIMessage:
    """Drop the auth cookies (primary and legacy)."""
    response.delete_cookie(get_settings().jwt_storage_key, path="/")
    response.delete_cookie(LEGACY_TOKEN_COOKIE, path="/")
    return APIMessage(message="Byli jste odhlášeni")


@router.get("/me", summary="Current user")
def me(user: User = Depends(get_current_user)) -> Dict[str, Any]:
    """Return the authenticated user."""
    return {"success": True, "user": user}
