import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request, Response

from furry_gallery.api_auth import can_edit_photographer, get_current_user, get_optional_user
from furry_gallery.db import Database, Session, get_db
from furry_gallery.exceptions import AuthorizationError, NotFoundError
from furry_gallery.listing import (
    FilterClause,
    Resource,
    count_value,
    handle_get_request,
    int_param,
    paginated_response,
    parse_filter_params,
    parse_pagination_params,
)
from furry_gallery.routers.blobs import PHOTO_FILES, PHOTO_FILES_INLINE, PHOTO_THUMBNAILS, serve_blob
from furry_gallery.schemas import LikeResponse, TagsUpdate, User

logger = logging.getLogger(__name__)

router = APIRouter()

PHOTO_SORTABLE = ("id", "date", "likes", "created_at", "event_id", "photographer_id")

PHOTOS = Resource(
    table="photos",
    exact_fields={"id": int_param, "event_id": int_param, "photographer_id": int_param},
    sortable=PHOTO_SORTABLE,
)

DETAIL_SELECT = """
    SELECT
        p.id,
        p.date,
        p.likes,
        p.event_id,
        p.photographer_id,
        e.name AS event,
        ph.name AS photographer,
        pf.id AS photo_id,
        pt.id AS thumbnail_id,
        (
            SELECT ARRAY_AGG(t2.name ORDER BY t2.name)
            FROM photo_tags ptg
            JOIN tags t2 ON t2.id = ptg.tag_id
            WHERE ptg.photo_id = p.id
        ) AS tags
    FROM photos p
    LEFT JOIN events e ON e.id = p.event_id
    LEFT JOIN photographers ph ON ph.id = p.photographer_id
    LEFT JOIN storage.photo_files pf ON pf.photo_id = p.id
    LEFT JOIN storage.photo_thumbnails pt ON pt.photo_id = p.id
"""
DETAIL_GROUP_BY = "GROUP BY p.id, e.name, ph.name, pf.id, pt.id"
TAG_JOIN = "JOIN photo_tags ptag ON ptag.photo_id = p.id JOIN tags t ON t.id = ptag.tag_id"


def _with_tag_list(row: Dict[str, Any]) -> Dict[str, Any]:
    row["tags"] = row.get("tags") or []
    return row


def _photo_or_404(db: Any, photo_id: int) -> Dict[str, Any]:
    photo = db.fetch_one("SELECT id, photographer_id, likes FROM photos WHERE id = %s", [photo_id])
    if not photo:
        raise NotFoundError("Fotografie nebyla nalezena")
    return photo


@router.get("", summary="List photos")
def list_photos(request: Request, db: Database = Depends(get_db)) -> Dict[str, Any]:
    return handle_get_request(db, request.query_params, PHOTOS)


@router.get("/details", summary="List photos with event, photographer and tags")
def list_photo_details(request: Request, db: Database = Depends(get_db)) -> Dict[str, Any]:
    params = parse_pagination_params(request.query_params, PHOTO_SORTABLE)
    clause = parse_filter_params(
        request.query_params,
        {"id": int_param, "event_id": int_param, "photographer_id": int_param},
        column_prefix="p.",
    )
    tag = request.query_params.get("tag")
    tag_join = ""
    if tag:
        tag_join = TAG_JOIN
        clause = clause.combine(FilterClause().add("t.name = %s", tag))

    rows = db.fetch_all(
        f"""
        {DETAIL_SELECT}
        {tag_join}
        {clause.where_clause}
        {DETAIL_GROUP_BY}
        ORDER BY p.{params.sort_by} {params.sort_order.value}
        LIMIT %s OFFSET %s
        """,
        clause.values + [params.limit, params.offset],
    )
    total = count_value(
        db.fetch_one(
            f"""
            SELECT COUNT(DISTINCT p.id) AS count
            FROM photos p
            {tag_join}
            {clause.where_clause}
            """,
            clause.values,
        )
    )
    return paginated_response([_with_tag_list(r) for r in rows], total, params)


@router.get("/thumbnails/{thumbnail_id}", summary="Photo thumbnail")
def get_thumbnail(thumbnail_id: int, db: Database = Depends(get_db)) -> Response:
    return serve_blob(db, PHOTO_THUMBNAILS, thumbnail_id)


@router.get("/files/{photo_id}", summary="Original photo for display")
def get_photo_file(photo_id: int, db: Database = Depends(get_db)) -> Response:
    return serve_blob(db, PHOTO_FILES_INLINE, photo_id)


@router.get("/download/{photo_id}", summary="Download the original photo")
def download_photo(photo_id: int, db: Database = Depends(get_db)) -> Response:
    _photo_or_404(db, photo_id)
    return serve_blob(db, PHOTO_FILES, photo_id)


@router.get("/{photo_id}", summary="Get photo detail")
def get_photo(
    photo_id: int,
    db: Database = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
) -> Dict[str, Any]:
    row = db.fetch_one(f"{DETAIL_SELECT} WHERE p.id = %s {DETAIL_GROUP_BY}", [photo_id])
    if not row:
        raise NotFoundError("Fotografie nebyla nalezena")
    photo = _with_tag_list(row)
    if user is not None:
        liked = db.fetch_one(
            "SELECT 1 AS liked FROM photo_likes WHERE photo_id = %s AND user_id = %s",
            [photo_id, user.id],
        )
        photo["liked"] = liked is not None
    return {"success": True, "data": photo}


def _toggle_like(tx: Session, photo_id: int, user_id: int, like: bool) -> LikeResponse:
    if like:
        changed = tx.execute(
            "INSERT INTO photo_likes (photo_id, user_id) VALUES (%s, %s) ON CONFLICT DO NOTHING",
            [photo_id, user_id],
        ) > 0
        if changed:
            tx.execute("UPDATE photos SET likes = likes + 1 WHERE id = %s", [photo_id])
    else:
        changed = tx.execute(
            "DELETE FROM photo_likes WHERE photo_id = %s AND user_id = %s",
            [photo_id, user_id],
        ) > 0
        if changed:
            tx.execute("UPDATE photos SET likes = GREATEST(likes - 1, 0) WHERE id = %s", [photo_id])

    row = tx.fetch_one("SELECT likes FROM photos WHERE id = %s", [photo_id]) or {}
    return LikeResponse(liked=like, changed=changed, likes=int(row.get("likes") or 0))


@router.post("/{photo_id}/like", response_model=LikeResponse, summary="Like a photo")
def like_photo(photo_id: int, user: User = Depends(get_current_user), db: Database = Depends(get_db)) -> LikeResponse:
    """Idempotent: liking an already liked photo changes nothing."""
    with db.transaction() as tx:
        _photo_or_404(tx, photo_id)
        return _toggle_like(tx, photo_id, user.id, like=True)


@router.delete("/{photo_id}/like", response_model=LikeResponse, summary="Remove a like")
def unlike_photo(photo_id: int, user: User = Depends(get_current_user), db: Database = Depends(get_db)) -> LikeResponse:
    with db.transaction() as tx:
        _photo_or_404(tx, photo_id)
        return _toggle_like(tx, photo_id, user.id, like=False)


@router.put("/{photo_id}/tags", summary="Replace the tags of a photo")
def update_photo_tags(
    photo_id: int,
    payload: TagsUpdate,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Only the photo's photographer (or an admin) may retag it. Unknown tags are created."""
    with db.transaction() as tx:
        photo = _photo_or_404(tx, photo_id)
        if not can_edit_photographer(user, photo["photographer_id"]):
            raise AuthorizationError("Nemáte oprávnění upravovat tuto fotografii")

        tx.execute("DELETE FROM photo_tags WHERE photo_id = %s", [photo_id])
        for name in payload.tags:
            tag = tx.execute_returning_one(
                "INSERT INTO tags (name) VALUES (%s) ON CONFLICT (name) DO UPDATE SET name = EXCLUDED.name RETURNING id",
                [name],
            )
            tx.execute(
                "INSERT INTO photo_tags (photo_id, tag_id) VALUES (%s, %s) ON CONFLICT DO NOTHING",
                [photo_id, tag["id"]],
            )

    tags: List[str] = sorted(payload.tags)
    logger.info(f"User id={user.id} set {len(tags)} tags on photo id={photo_id}")
    return {"success": True, "message": "Tagy byly aktualizovány", "data": {"photo_id": photo_id, "tags": tags}}
