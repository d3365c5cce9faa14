import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from furry_gallery.api_auth import can_edit_organizer, get_current_user
from furry_gallery.db import Database, get_db
from furry_gallery.exceptions import AuthorizationError, NotFoundError, ValidationError
from furry_gallery.listing import Resource, handle_get_request, int_param
from furry_gallery.schemas import OrganizerData, User

logger = logging.getLogger(__name__)

router = APIRouter()

ORGANIZER_COLUMNS = "id, name, description, contact_email, website, avatar_url, is_beginner, created_at"

ORGANIZERS = Resource(
    table="organizers",
    exact_fields={"id": int_param},
    text_fields=("name",),
    sortable=("id", "name", "created_at", "is_beginner"),
    columns=ORGANIZER_COLUMNS,
)


def _values(payload: OrganizerData) -> list:
    return [
        payload.name.strip(),
        payload.description or None,
        payload.contact_email or None,
        payload.website or None,
    ]


@router.get("", summary="List organizers")
def list_organizers(request: Request, db: Database = Depends(get_db)) -> Dict[str, Any]:
    return handle_get_request(db, request.query_params, ORGANIZERS)


@router.get("/{organizer_id}", summary="Get organizer")
def get_organizer(organizer_id: int, db: Database = Depends(get_db)) -> Dict[str, Any]:
    organizer = db.fetch_one(f"SELECT {ORGANIZER_COLUMNS} FROM organizers WHERE id = %s", [organizer_id])
    if not organizer:
        raise NotFoundError("Organizátor nebyl nalezen")
    row = db.fetch_one("SELECT COUNT(*) AS count FROM events WHERE organizer_id = %s", [organizer_id]) or {}
    organizer["event_count"] = int(row.get("count") or 0)
    return {"success": True, "data": organizer}


@router.post("", summary="Create own organizer profile")
def create_organizer(
    payload: OrganizerData,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Create an organizer profile and link it to the current user."""
    if user.organizer_id:
        raise ValidationError("Již máte vytvořený profil organizátora")

    with db.transaction() as tx:
        organizer = tx.execute_returning_one(
            f"""
            INSERT INTO organizers (name, description, contact_email, website, is_beginner)
            VALUES (%s, %s, %s, %s, TRUE)
            RETURNING {ORGANIZER_COLUMNS}
            """,
            _values(payload),
        )
        tx.execute("UPDATE users SET organizer_id = %s WHERE id = %s", [organizer["id"], user.id])

    logger.info(f"User id={user.id} created organizer profile id={organizer['id']}")
    return {
        "success": True,
        "message": "Profil organizátora byl úspěšně vytvořen",
        "organizer_id": organizer["id"],
        "data": organizer,
    }


@router.put("/{organizer_id}", summary="Update organizer profile")
def update_organizer(
    organizer_id: int,
    payload: OrganizerData,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    if not can_edit_organizer(user, organizer_id):
        raise AuthorizationError("Nemáte oprávnění upravovat tento profil")

    organizer = db.fetch_one(
        f"""
        UPDATE organizers SET name = %s, description = %s, contact_email = %s, website = %s
        WHERE id = %s
        RETURNING {ORGANIZER_COLUMNS}
        """,
        _values(payload) + [organizer_id],
    )
    if not organizer:
        raise NotFoundError("Organizátor nebyl nalezen")
    return {"success": True, "message": "Profil organizátora byl úspěšně aktualizován", "data": organizer}
