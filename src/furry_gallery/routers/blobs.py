from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Response

from furry_gallery.db import Database, get_db
from furry_gallery.exceptions import NotFoundError, ValidationError

router = APIRouter()

LONG_CACHE = "public, max-age=31536000"
IMMUTABLE_CACHE = "public, max-age=31536000, immutable"
NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

MARKDOWN_IMAGE_PREFIX = "mdimg_"


@dataclass(frozen=True)
class BlobSource:
    """
    Where a kind of stored binary lives and how it is served.

    disposition is "inline" or "attachment" (None sends no
    Content-Disposition); filename is a format string over the row and key.
    """

    table: str
    key_column: str = "id"
    data_column: str = "file_data"
    with_name: bool = False
    headers: Dict[str, str] = field(default_factory=lambda: {"Cache-Control": LONG_CACHE})
    disposition: Optional[str] = None
    filename: str = "{original_name}"
    not_found: str = "Obrázek nebyl nalezen"


AVATARS = BlobSource(table="storage.avatars", headers=NO_CACHE_HEADERS, not_found="Avatar nebyl nalezen")
PROFILE_IMAGES = BlobSource(table="storage.profile_images")
PROFILE_PICTURES = BlobSource(
    table="storage.profile_pictures",
    key_column="user_id",
    data_column="thumbnail_data",
    disposition="inline",
    filename="profile-{key}.jpg",
    not_found="Profilový obrázek nebyl nalezen",
)
EVENT_IMAGES = BlobSource(table="storage.photo_files")
MARKDOWN_IMAGES = BlobSource(
    table="storage.markdown_images",
    with_name=True,
    headers={"Cache-Control": IMMUTABLE_CACHE},
    disposition="inline",
)
PHOTO_THUMBNAILS = BlobSource(
    table="storage.photo_thumbnails",
    with_name=True,
    headers={"Cache-Control": IMMUTABLE_CACHE},
    disposition="inline",
    filename="thumb-{original_name}",
    not_found="Náhled fotografie nebyl nalezen",
)
PHOTO_FILES = BlobSource(
    table="storage.photo_files",
    key_column="photo_id",
    with_name=True,
    headers={"Cache-Control": "private, no-cache"},
    disposition="attachment",
    not_found="Data fotografie nebyla nalezena",
)
PHOTO_FILES_INLINE = BlobSource(
    table="storage.photo_files",
    key_column="photo_id",
    headers={"Cache-Control": "max-age=86400"},
    disposition="inline",
    filename="photo_{key}.jpg",
    not_found="Fotografie nebyla nalezena",
)


def _fetch_blob(db: Database, source: BlobSource, key: Any) -> Dict[str, Any]:
    columns = f"{source.data_column} AS file_data, content_type"
    if source.with_name:
        columns += ", original_name"
    row = db.fetch_one(f"SELECT {columns} FROM {source.table} WHERE {source.key_column} = %s LIMIT 1", [key])
    if not row or row.get("file_data") is None:
        raise NotFoundError(source.not_found)
    return row


# PUBLIC_INTERFACE
def serve_blob(db: Database, source: BlobSource, key: Any) -> Response:
    """Load one stored binary and return it with its content type and cache headers."""
    row = _fetch_blob(db, source, key)
    headers = dict(source.headers)
    if source.disposition:
        filename = source.filename.format(key=key, original_name=row.get("original_name") or key)
        headers["Content-Disposition"] = f'{source.disposition}; filename="{filename}"'
    return Response(content=bytes(row["file_data"]), media_type=row["content_type"], headers=headers)


@router.get("/avatars/{avatar_id}", summary="Avatar image")
def get_avatar(avatar_id: int, db: Database = Depends(get_db)) -> Response:
    return serve_blob(db, AVATARS, avatar_id)


@router.get("/images/{image_id}", summary="Profile image")
def get_profile_image(image_id: int, db: Database = Depends(get_db)) -> Response:
    return serve_blob(db, PROFILE_IMAGES, image_id)


@router.get("/profile-pictures/{user_id}", summary="Profile picture of a user")
def get_profile_picture(user_id: int, db: Database = Depends(get_db)) -> Response:
    return serve_blob(db, PROFILE_PICTURES, user_id)


@router.get("/event-images/{image_id}", summary="Event cover image")
def get_event_image(image_id: int, db: Database = Depends(get_db)) -> Response:
    return serve_blob(db, EVENT_IMAGES, image_id)


@router.get("/markdown-images/{image_id}", summary="Image embedded in markdown text")
def get_markdown_image(image_id: str, db: Database = Depends(get_db)) -> Response:
    if not image_id.strip():
        raise ValidationError("Chybí ID obrázku")
    if not image_id.startswith(MARKDOWN_IMAGE_PREFIX):
        image_id = MARKDOWN_IMAGE_PREFIX + image_id
    return serve_blob(db, MARKDOWN_IMAGES, image_id)
