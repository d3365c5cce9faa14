from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request

from furry_gallery.db import Database, get_db
from furry_gallery.listing import Resource, handle_get_request, int_param

router = APIRouter()

TAGS = Resource(
    table="tags",
    exact_fields={"id": int_param},
    text_fields=("name",),
    sortable=("id", "name"),
)


@router.get("", summary="List tags")
def list_tags(request: Request, db: Database = Depends(get_db)) -> Dict[str, Any]:
    return handle_get_request(db, request.query_params, TAGS)


@router.get("/popular", summary="Most used tags")
def popular_tags(
    search: Optional[str] = Query(None, description="Substring of the tag name"),
    limit: int = Query(30, ge=1, description="Maximum number of tags"),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Tag names with the number of photos carrying them, most used first."""
    where = ""
    params: List[Any] = []
    if search:
        where = "WHERE t.name ILIKE %s"
        params.append(f"%{search}%")

    rows = db.fetch_all(
        f"""
        SELECT t.id, t.name, COUNT(pt.photo_id) AS usage_count
        FROM tags t
        LEFT JOIN photo_tags pt ON pt.tag_id = t.id
        {where}
        GROUP BY t.id, t.name
        ORDER BY usage_count DESC, t.name ASC
        LIMIT %s
        """,
        params + [limit],
    )
    return {"success": True, "data": rows}
