import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from furry_gallery.api_auth import can_edit_photographer, get_current_user, require_admin
from furry_gallery.db import Database, get_db
from furry_gallery.exceptions import AuthorizationError, NotFoundError, ValidationError
from furry_gallery.listing import Resource, handle_get_request, int_param
from furry_gallery.schemas import (
    PhotographerData,
    TakeoverDecision,
    TakeoverRequestData,
    TakeoverStatus,
    User,
)

logger = logging.getLogger(__name__)

router = APIRouter()

PHOTOGRAPHER_COLUMNS = "id, name, bio, profile, avatar_url, is_beginner, created_at"

PHOTOGRAPHERS = Resource(
    table="photographers",
    exact_fields={"id": int_param},
    text_fields=("name",),
    sortable=("id", "name", "created_at", "is_beginner"),
    columns=PHOTOGRAPHER_COLUMNS,
)

TAKEOVER_COLUMNS = "id, user_id, photographer_id, reason, status, admin_note, created_at, updated_at"

TAKEOVER_REQUESTS = Resource(
    table="photographer_takeover_requests",
    exact_fields={"status": str, "user_id": int_param, "photographer_id": int_param},
    sortable=("id", "status", "created_at", "updated_at"),
    columns=TAKEOVER_COLUMNS,
)

PROFILE_CLAIMED = "Tento profil fotografa již má přiřazeného uživatele"


def _stats(db: Database, photographer_id: int) -> Dict[str, int]:
    row = db.fetch_one(
        """
        SELECT COUNT(p.id) AS photo_count,
               COALESCE(SUM(p.likes), 0) AS total_likes,
               COUNT(DISTINCT p.event_id) AS event_count
        FROM photos p
        WHERE p.photographer_id = %s
        """,
        [photographer_id],
    ) or {}
    return {
        "photo_count": int(row.get("photo_count") or 0),
        "total_likes": int(row.get("total_likes") or 0),
        "event_count": int(row.get("event_count") or 0),
    }


@router.get("", summary="List photographers")
def list_photographers(request: Request, db: Database = Depends(get_db)) -> Dict[str, Any]:
    return handle_get_request(db, request.query_params, PHOTOGRAPHERS)


@router.get("/stats", summary="Photographer statistics")
def photographer_stats(
    photographer_id: Optional[int] = Query(None, alias="id", description="Only this photographer"),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Photo/like/event counts per photographer, busiest first."""
    where = ""
    params: List[Any] = []
    if photographer_id is not None:
        where = "WHERE photographer_id = %s"
        params.append(photographer_id)
    rows = db.fetch_all(f"SELECT * FROM photographer_stats {where} ORDER BY photo_count DESC", params)
    return {"success": True, "data": rows}


@router.get("/available", summary="Photographer profiles without a linked user")
def available_photographers(
    search: Optional[str] = Query(None, description="Substring of name, bio or profile text"),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Unclaimed profiles a user may request to take over, newest first."""
    where = ["NOT EXISTS (SELECT 1 FROM users u WHERE u.photographer_id = ph.id)"]
    params: List[Any] = []
    if search:
        where.append(
            "(ph.name ILIKE %s OR COALESCE(ph.bio, '') ILIKE %s OR COALESCE(ph.profile, '') ILIKE %s)"
        )
        params.extend([f"%{search}%"] * 3)
    where_sql = " AND ".join(where)
    rows = db.fetch_all(
        f"""
        SELECT ph.id, ph.name, ph.bio, ph.profile, ph.is_beginner, ph.created_at
        FROM photographers ph
        WHERE {where_sql}
        ORDER BY ph.created_at DESC
        """,
        params,
    )
    return {"success": True, "data": rows}


@router.get("/takeover-requests", summary="List takeover requests (admin)")
def list_takeover_requests(
    request: Request,
    _: User = Depends(require_admin),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    return handle_get_request(db, request.query_params, TAKEOVER_REQUESTS)


@router.put("/takeover-requests/{request_id}", summary="Approve or reject a takeover request (admin)")
def decide_takeover_request(
    request_id: int,
    payload: TakeoverDecision,
    admin: User = Depends(require_admin),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """
    Settle a pending request.

    Approval links the profile to the requesting user and rejects the other
    pending requests for the same profile, all in one transaction.
    """
    with db.transaction() as tx:
        takeover = tx.fetch_one(
            f"SELECT {TAKEOVER_COLUMNS} FROM photographer_takeover_requests WHERE id = %s FOR UPDATE",
            [request_id],
        )
        if not takeover:
            raise NotFoundError("Žádost nebyla nalezena")
        if takeover["status"] != TakeoverStatus.pending.value:
            raise ValidationError("Žádost již byla vyřízena")

        photographer_id = takeover["photographer_id"]
        if payload.status == TakeoverStatus.approved.value:
            if tx.fetch_one("SELECT id FROM users WHERE photographer_id = %s", [photographer_id]):
                raise ValidationError(PROFILE_CLAIMED)
            owner = tx.fetch_one("SELECT photographer_id FROM users WHERE id = %s", [takeover["user_id"]])
            if not owner:
                raise NotFoundError("Uživatel nebyl nalezen")
            if owner["photographer_id"]:
                raise ValidationError("Uživatel již má profil fotografa")

            tx.execute("UPDATE users SET photographer_id = %s WHERE id = %s", [photographer_id, takeover["user_id"]])
            tx.execute(
                """
                UPDATE photographer_takeover_requests
                SET status = 'rejected', admin_note = %s, updated_at = NOW()
                WHERE photographer_id = %s AND status = 'pending' AND id <> %s
                """,
                ["Profil byl přidělen jinému uživateli", photographer_id, request_id],
            )

        updated = tx.execute_returning_one(
            f"""
            UPDATE photographer_takeover_requests
            SET status = %s, admin_note = %s, updated_at = NOW()
            WHERE id = %s
            RETURNING {TAKEOVER_COLUMNS}
            """,
            [payload.status, payload.admin_note, request_id],
        )

    logger.info(f"Admin id={admin.id} {payload.status} takeover request id={request_id}")
    return {"success": True, "message": "Žádost byla vyřízena", "data": updated}


@router.get("/{photographer_id}", summary="Get photographer")
def get_photographer(photographer_id: int, db: Database = Depends(get_db)) -> Dict[str, Any]:
    photographer = db.fetch_one(f"SELECT {PHOTOGRAPHER_COLUMNS} FROM photographers WHERE id = %s", [photographer_id])
    if not photographer:
        raise NotFoundError("Fotograf nebyl nalezen")
    photographer["stats"] = _stats(db, photographer_id)
    return {"success": True, "data": photographer}


@router.post("", summary="Create own photographer profile")
def create_photographer(
    payload: PhotographerData,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Create a photographer profile and link it to the current user."""
    if user.photographer_id:
        raise ValidationError("Již máte vytvořený profil fotografa")

    with db.transaction() as tx:
        photographer = tx.execute_returning_one(
            f"""
            INSERT INTO photographers (name, bio, profile, is_beginner)
            VALUES (%s, %s, %s, TRUE)
            RETURNING {PHOTOGRAPHER_COLUMNS}
            """,
            [payload.name.strip(), payload.bio or None, payload.profile or None],
        )
        tx.execute("UPDATE users SET photographer_id = %s WHERE id = %s", [photographer["id"], user.id])

    logger.info(f"User id={user.id} created photographer profile id={photographer['id']}")
    return {
        "success": True,
        "message": "Profil fotografa byl úspěšně vytvořen",
        "photographer_id": photographer["id"],
        "data": photographer,
    }


@router.put("/{photographer_id}", summary="Update photographer profile")
def update_photographer(
    photographer_id: int,
    payload: PhotographerData,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    if not can_edit_photographer(user, photographer_id):
        raise AuthorizationError("Nemáte oprávnění upravovat tento profil")

    photographer = db.fetch_one(
        f"""
        UPDATE photographers SET name = %s, bio = %s, profile = %s
        WHERE id = %s
        RETURNING {PHOTOGRAPHER_COLUMNS}
        """,
        [payload.name.strip(), payload.bio or None, payload.profile or None, photographer_id],
    )
    if not photographer:
        raise NotFoundError("Fotograf nebyl nalezen")
    return {"success": True, "message": "Profil fotografa byl úspěšně aktualizován", "data": photographer}


@router.post(
    "/{photographer_id}/takeover-requests",
    status_code=status.HTTP_201_CREATED,
    summary="Request to take over a photographer profile",
)
def request_takeover(
    photographer_id: int,
    payload: TakeoverRequestData,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Ask an admin to link an unclaimed profile to the current user."""
    with db.transaction() as tx:
        if not tx.fetch_one("SELECT id FROM photographers WHERE id = %s", [photographer_id]):
            raise NotFoundError("Profil fotografa nebyl nalezen")
        if tx.fetch_one("SELECT id FROM users WHERE photographer_id = %s", [photographer_id]):
            raise ValidationError(PROFILE_CLAIMED)

        existing = tx.fetch_one(
            """
            SELECT id, status FROM photographer_takeover_requests
            WHERE user_id = %s AND photographer_id = %s AND status IN ('pending', 'approved')
            LIMIT 1
            """,
            [user.id, photographer_id],
        )
        if existing:
            if existing["status"] == TakeoverStatus.pending.value:
                raise ValidationError("Již máte aktivní žádost pro tohoto fotografa")
            raise ValidationError("Vaše žádost pro tohoto fotografa byla již schválena")

        takeover = tx.execute_returning_one(
            f"""
            INSERT INTO photographer_takeover_requests (user_id, photographer_id, reason, status)
            VALUES (%s, %s, %s, 'pending')
            RETURNING {TAKEOVER_COLUMNS}
            """,
            [user.id, photographer_id, payload.reason],
        )

    logger.info(f"User id={user.id} requested takeover of photographer id={photographer_id}")
    return {"success": True, "message": "Žádost byla úspěšně odeslána", "data": takeover}
