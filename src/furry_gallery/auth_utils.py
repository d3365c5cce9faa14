import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import psycopg2
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError as PydanticValidationError

from furry_gallery.config import get_settings
from furry_gallery.db import Database
from furry_gallery.schemas import (
    LoginResult,
    OperationResult,
    RegisterResult,
    TokenPayload,
    User,
    UserResult,
)

logger = logging.getLogger(__name__)

USER_COLUMNS = "id, username, email, is_active, photographer_id, organizer_id, avatar_id, role, created_at"

INVALID_CREDENTIALS = "Neplatné uživatelské jméno nebo heslo"
ACCOUNT_DISABLED = "Účet je deaktivován"
USER_NOT_FOUND = "Uživatel nebyl nalezen"


@lru_cache
def _pwd_context() -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=get_settings().bcrypt_rounds)


def _jwt_secret() -> str:
    return get_settings().jwt_secret


def _jwt_algorithm() -> str:
    return get_settings().jwt_algorithm


def _jwt_exp_minutes() -> int:
    return get_settings().jwt_expires_minutes


# PUBLIC_INTERFACE
def hash_password(password: str) -> str:
    """Hash a plaintext password."""
    return _pwd_context().hash(password)


# PUBLIC_INTERFACE
def verify_password(password: str, password_hash: str) -> bool:
    """Verify a plaintext password against a stored hash."""
    try:
        return _pwd_context().verify(password, password_hash)
    except (ValueError, TypeError):
        logger.warning("Stored password hash is malformed")
        return False


# PUBLIC_INTERFACE
def generate_token(payload: TokenPayload, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT carrying the user's identity and linked profile ids."""
    to_encode = payload.model_dump()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=_jwt_exp_minutes()))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, _jwt_secret(), algorithm=_jwt_algorithm())


# PUBLIC_INTERFACE
def verify_token(token: str) -> Optional[TokenPayload]:
    """Check signature and expiry. Returns the payload, or None on any failure."""
    try:
        claims = jwt.decode(token, _jwt_secret(), algorithms=[_jwt_algorithm()])
        return TokenPayload(**{k: v for k, v in claims.items() if k != "exp"})
    except (JWTError, PydanticValidationError, TypeError, AttributeError) as e:
        logger.info(f"JWT verification failed: {e}")
        return None


# PUBLIC_INTERFACE
def register_user(db: Database, username: str, email: str, password: str) -> RegisterResult:
    """Create an account after checking that username and email are free."""
    try:
        if db.fetch_one("SELECT id FROM users WHERE username = %s", [username]):
            return RegisterResult(
                success=False,
                message="Toto uživatelské jméno je již obsazeno. Zvolte prosím jiné.",
            )

        if db.fetch_one("SELECT id FROM users WHERE email = %s", [email]):
            return RegisterResult(
                success=False,
                message="Tento email je již registrován. Zvolte prosím jiný.",
            )

        row = db.execute_returning_one(
            "INSERT INTO users (username, email, password_hash) VALUES (%s, %s, %s) RETURNING id",
            [username, email, hash_password(password)],
        )
        logger.info(f"Registered user {username} (id={row['id']})")
        return RegisterResult(success=True, userId=row["id"])
    except psycopg2.Error as e:
        logger.error(f"Registration error: {e}")
        return RegisterResult(success=False, message="Při registraci došlo k chybě")


# PUBLIC_INTERFACE
def login_user(db: Database, username: str, password: str) -> LoginResult:
    """Verify credentials and issue a token together with the sanitized user."""
    try:
        user = db.fetch_one(
            f"SELECT {USER_COLUMNS}, password_hash FROM users WHERE username = %s",
            [username],
        )
    except psycopg2.Error as e:
        logger.error(f"Login error: {e}")
        return LoginResult(success=False, message="Při přihlašování došlo k chybě")

    if not user or not verify_password(password, user["password_hash"]):
        logger.info(f"Failed login for username={username}")
        return LoginResult(success=False, message=INVALID_CREDENTIALS)

    if not user.get("is_active"):
        return LoginResult(success=False, message=ACCOUNT_DISABLED)

    token = generate_token(TokenPayload.for_user(user))
    user.pop("password_hash", None)
    return LoginResult(success=True, token=token, user=User(**user))


# PUBLIC_INTERFACE
def get_user_from_token(db: Database, token: str) -> UserResult:
    """Resolve a token to the current user row, read fresh from the database."""
    payload = verify_token(token)
    if payload is None:
        return UserResult(success=False, message="Neplatný nebo expirovaný token")

    try:
        user = db.fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = %s", [payload.user_id])
    except psycopg2.Error as e:
        logger.error(f"Get user from token error: {e}")
        return UserResult(success=False, message="Při získávání informací o uživateli došlo k chybě")

    if not user:
        return UserResult(success=False, message=USER_NOT_FOUND)
    if not user.get("is_active"):
        return UserResult(success=False, message=ACCOUNT_DISABLED)
    return UserResult(success=True, user=User(**user))


# PUBLIC_INTERFACE
def change_password(db: Database, user_id: int, current_password: str, new_password: str) -> OperationResult:
    """Replace the password hash once the current password has been re-verified."""
    try:
        row = db.fetch_one("SELECT password_hash FROM users WHERE id = %s", [user_id])
        if not row:
            return OperationResult(success=False, message=USER_NOT_FOUND)

        if not verify_password(current_password, row["password_hash"]):
            return OperationResult(success=False, message="Současné heslo není správné")

        db.execute("UPDATE users SET password_hash = %s WHERE id = %s", [hash_password(new_password), user_id])
        logger.info(f"Password changed for user id={user_id}")
        return OperationResult(success=True, message="Heslo bylo úspěšně změněno")
    except psycopg2.Error as e:
        logger.error(f"Password change error: {e}")
        return OperationResult(success=False, message="Při změně hesla došlo k chybě")
