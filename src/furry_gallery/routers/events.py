import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request

from furry_gallery.api_auth import can_edit_organizer, get_current_user, is_admin
from furry_gallery.db import Database, get_db
from furry_gallery.exceptions import AuthorizationError, NotFoundError, ValidationError
from furry_gallery.listing import FilterClause, Resource, bool_param, handle_get_request, int_param
from furry_gallery.schemas import EventData, User

logger = logging.getLogger(__name__)

router = APIRouter()

EVENT_COLUMNS = "id, name, description, location, date, organizer_id, cover_image_id, created_at"

EVENTS = Resource(
    table="events",
    exact_fields={"id": int_param, "organizer_id": int_param},
    text_fields=("name", "location"),
    sortable=("id", "name", "location", "date", "created_at"),
    columns=EVENT_COLUMNS,
)


def _date_filter(request: Request) -> Optional[FilterClause]:
    """`upcoming=true` or `past=true` (only one of them) narrows by today's date."""
    try:
        upcoming = bool_param(request.query_params.get("upcoming", "false"))
        past = bool_param(request.query_params.get("past", "false"))
    except ValueError:
        raise ValidationError("Parametry upcoming a past musí být true nebo false")

    if upcoming and not past:
        return FilterClause().add("date >= CURRENT_DATE")
    if past and not upcoming:
        return FilterClause().add("date < CURRENT_DATE")
    return None


@router.get("", summary="List events")
def list_events(request: Request, db: Database = Depends(get_db)) -> Dict[str, Any]:
    return handle_get_request(db, request.query_params, EVENTS, extra=_date_filter(request))


@router.get("/{event_id}", summary="Get event")
def get_event(event_id: int, db: Database = Depends(get_db)) -> Dict[str, Any]:
    event = db.fetch_one(
        """
        SELECT e.id, e.name, e.description, e.location, e.date, e.organizer_id, e.cover_image_id, e.created_at,
               o.name AS organizer_name,
               (SELECT COUNT(*) FROM photos p WHERE p.event_id = e.id) AS photo_count
        FROM events e
        LEFT JOIN organizers o ON o.id = e.organizer_id
        WHERE e.id = %s
        """,
        [event_id],
    )
    if not event:
        raise NotFoundError("Událost nebyla nalezena")
    event["photo_count"] = int(event.get("photo_count") or 0)
    return {"success": True, "data": event}


@router.post("", summary="Create event")
def create_event(
    payload: EventData,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Organizers create events under their own profile; admins may pick any organizer."""
    if is_admin(user):
        organizer_id = payload.organizer_id if payload.organizer_id is not None else user.organizer_id
    elif user.organizer_id:
        organizer_id = user.organizer_id
    else:
        raise AuthorizationError("Pro vytvoření události potřebujete profil organizátora")

    event = db.execute_returning_one(
        f"""
        INSERT INTO events (name, description, location, date, organizer_id, cover_image_id)
        VALUES (%s, %s, %s, %s, %s, %s)
        RETURNING {EVENT_COLUMNS}
        """,
        [
            payload.name.strip(),
            payload.description or None,
            payload.location.strip(),
            payload.date,
            organizer_id,
            payload.cover_image_id,
        ],
    )
    logger.info(f"User id={user.id} created event id={event['id']}")
    return {"success": True, "message": "Událost byla úspěšně vytvořena", "data": event}


@router.put("/{event_id}", summary="Update event")
def update_event(
    event_id: int,
    payload: EventData,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    existing = db.fetch_one("SELECT id, organizer_id FROM events WHERE id = %s", [event_id])
    if not existing:
        raise NotFoundError("Událost nebyla nalezena")
    if not can_edit_organizer(user, existing["organizer_id"]):
        raise AuthorizationError("Nemáte oprávnění upravovat tuto událost")

    organizer_id = existing["organizer_id"]
    if is_admin(user) and payload.organizer_id is not None:
        organizer_id = payload.organizer_id

    event = db.execute_returning_one(
        f"""
        UPDATE events
        SET name = %s, description = %s, location = %s, date = %s, organizer_id = %s, cover_image_id = %s
        WHERE id = %s
        RETURNING {EVENT_COLUMNS}
        """,
        [
            payload.name.strip(),
            payload.description or None,
            payload.location.strip(),
            payload.date,
            organizer_id,
            payload.cover_image_id,
            event_id,
        ],
    )
    return {"success": True, "message": "Událost byla úspěšně aktualizována", "data": event}
