import logging
from contextlib import asynccontextmanager
from typing import Any, Dict

import psycopg2
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from furry_gallery.api_auth import create_auth_error_response, create_permission_error_response
from furry_gallery.config import get_settings
from furry_gallery.db import Database, get_db
from furry_gallery.exceptions import (
    AuthenticationError,
    AuthorizationError,
    GalleryError,
    database_exception_handler,
    gallery_exception_handler,
    request_validation_exception_handler,
    unexpected_exception_handler,
)
from furry_gallery.routers import auth, blobs, events, organizers, photo_tags, photographers, photos, tags, users

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database pool on startup and close it on shutdown."""
    logger.info(f"Starting Furry Gallery API in {settings.environment} mode")
    if settings.uses_default_secret:
        if settings.is_production:
            logger.warning("JWT_SECRET is not set; tokens are signed with the built-in default secret")
        else:
            logger.info("Using the built-in development JWT secret")

    db = Database(settings)
    db.open()
    if settings.db_init_schema:
        db.init_schema()
    app.state.db = db

    yield

    logger.info("Shutting down Furry Gallery API")
    db.close()


openapi_tags = [
    {"name": "Health", "description": "Service health checks."},
    {"name": "Auth", "description": "Register, login/logout and the current user."},
    {"name": "Users", "description": "User accounts."},
    {"name": "Photographers", "description": "Photographer profiles and statistics."},
    {"name": "Organizers", "description": "Event organizer profiles."},
    {"name": "Events", "description": "Events photos are taken at."},
    {"name": "Photos", "description": "Photos, likes, tags and photo binaries."},
    {"name": "Tags", "description": "Photo tags."},
    {"name": "Images", "description": "Stored avatars and images."},
]

app = FastAPI(
    title="Furry Gallery API",
    description=(
        "Backend API for the furry photo gallery: photographers, organizers, events and photos.\n\n"
        "Auth: the login cookie, or the `Authorization: Bearer <token>` header."
    ),
    version="1.0.0",
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def authentication_exception_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    logger.info(f"Unauthenticated {request.method} {request.url.path}: {exc.message}")
    return create_auth_error_response(exc.message)


async def authorization_exception_handler(request: Request, exc: AuthorizationError) -> JSONResponse:
    logger.info(f"Forbidden {request.method} {request.url.path}: {exc.message}")
    return create_permission_error_response(exc.message)


app.add_exception_handler(AuthenticationError, authentication_exception_handler)
app.add_exception_handler(AuthorizationError, authorization_exception_handler)
app.add_exception_handler(GalleryError, gallery_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(psycopg2.Error, database_exception_handler)
app.add_exception_handler(Exception, unexpected_exception_handler)

app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(photographers.router, prefix="/api/photographers", tags=["Photographers"])
app.include_router(organizers.router, prefix="/api/organizers", tags=["Organizers"])
app.include_router(events.router, prefix="/api/events", tags=["Events"])
app.include_router(photos.router, prefix="/api/photos", tags=["Photos"])
app.include_router(tags.router, prefix="/api/tags", tags=["Tags"])
app.include_router(photo_tags.router, prefix="/api/photo-tags", tags=["Tags"])
app.include_router(blobs.router, prefix="/api", tags=["Images"])


@app.get("/", tags=["Health"], summary="Health check")
def health_check() -> Dict[str, str]:
    """Health check endpoint used by the frontend to verify backend availability."""
    return {"message": "Healthy"}


@app.get("/api/health", tags=["Health"], summary="Database health check")
def database_health(db: Database = Depends(get_db)) -> Any:
    """Report database connectivity; 503 when the database cannot be reached."""
    try:
        status_info = db.ping()
    except psycopg2.Error as e:
        logger.error(f"Database health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"success": False, "database": {"connected": False}, "message": "Databáze není dostupná"},
        )
    return {"success": True, "database": status_info}
