from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request

from furry_gallery.api_auth import get_current_user, is_admin
from furry_gallery.auth_utils import USER_COLUMNS, change_password
from furry_gallery.db import Database, get_db
from furry_gallery.exceptions import AuthorizationError, NotFoundError, ValidationError
from furry_gallery.listing import FilterClause, count_value, paginated_response, parse_pagination_params
from furry_gallery.schemas import APIMessage, PasswordChangeRequest, User, UserUpdate

router = APIRouter()

SORTABLE = ("id", "username", "email", "role", "created_at")
SEARCH_FIELDS = ("username", "email")


def _user_filter(request: Request) -> FilterClause:
    clause = FilterClause()

    roles = [r for r in request.query_params.getlist("role") if r]
    if roles:
        placeholders = ", ".join(["%s"] * len(roles))
        clause.add(f"role IN ({placeholders})", *roles)

    terms: List[str] = []
    values: List[Any] = []
    for field_name in SEARCH_FIELDS:
        value = request.query_params.get(field_name)
        if value:
            terms.append(f"{field_name} ILIKE %s")
            values.append(f"%{value}%")
    if terms:
        clause.add("(" + " OR ".join(terms) + ")", *values)

    return clause


@router.get("", summary="List users")
def list_users(request: Request, db: Database = Depends(get_db)) -> Dict[str, Any]:
    """Users filtered by role (repeatable) and searched by username/email."""
    params = parse_pagination_params(request.query_params, SORTABLE)
    clause = _user_filter(request)

    rows = db.fetch_all(
        f"SELECT {USER_COLUMNS} FROM users {clause.where_clause} "
        f"ORDER BY {params.sort_by} {params.sort_order.value} LIMIT %s OFFSET %s",
        clause.values + [params.limit, params.offset],
    )
    total = count_value(db.fetch_one(f"SELECT COUNT(*) AS count FROM users {clause.where_clause}", clause.values))
    return paginated_response(rows, total, params)


@router.get("/{user_id}", summary="Get user")
def get_user(user_id: int, db: Database = Depends(get_db)) -> Dict[str, Any]:
    row = db.fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = %s", [user_id])
    if not row:
        raise NotFoundError("Uživatel nebyl nalezen")
    return {"success": True, "data": User(**row)}


@router.put("/{user_id}", summary="Update user profile")
def update_user(
    user_id: int,
    payload: UserUpdate,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Change username and email (own account, or any account for admins)."""
    if user.id != user_id and not is_admin(user):
        raise AuthorizationError("Nemáte oprávnění upravovat tohoto uživatele")

    username = payload.username
    email = str(payload.email)
    if db.fetch_one("SELECT id FROM users WHERE username = %s AND id <> %s", [username, user_id]):
        raise ValidationError("Toto uživatelské jméno je již používáno")
    if db.fetch_one("SELECT id FROM users WHERE email = %s AND id <> %s", [email, user_id]):
        raise ValidationError("Email je již používán jiným uživatelem")

    row = db.fetch_one(
        f"UPDATE users SET username = %s, email = %s WHERE id = %s RETURNING {USER_COLUMNS}",
        [username, email, user_id],
    )
    if not row:
        raise NotFoundError("Uživatel nebyl nalezen")
    return {"success": True, "message": "Profil byl úspěšně aktualizován", "data": User(**row)}


@router.put("/{user_id}/password", response_model=APIMessage, summary="Change password")
def update_password(
    user_id: int,
    payload: PasswordChangeRequest,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> APIMessage:
    """Users may only change their own password."""
    if user.id != user_id:
        raise AuthorizationError("Nemáte oprávnění měnit heslo tohoto uživatele")

    result = change_password(db, user_id, payload.currentPassword, payload.newPassword)
    if not result.success:
        raise ValidationError(result.message or "Při změně hesla došlo k chybě")
    return APIMessage(message="Heslo bylo úspěšně změněno")
