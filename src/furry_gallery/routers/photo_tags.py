from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from furry_gallery.db import Database, get_db
from furry_gallery.listing import Resource, handle_get_request, int_param

router = APIRouter()

PHOTO_TAGS = Resource(
    table="photo_tags",
    exact_fields={"photo_id": int_param, "tag_id": int_param},
    sortable=("photo_id", "tag_id"),
    columns="photo_id, tag_id",
    default_sort="photo_id",
)


@router.get("", summary="List photo/tag pairs")
def list_photo_tags(request: Request, db: Database = Depends(get_db)) -> Dict[str, Any]:
    """Which tags are attached to which photos; filter by `photo_id` and/or `tag_id`."""
    return handle_get_request(db, request.query_params, PHOTO_TAGS)
