import logging
from typing import Any, Dict, List, Optional

import psycopg2
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from furry_gallery.config import get_settings

logger = logging.getLogger(__name__)

# Error type used by our own pydantic validators; its message is shown as is.
VALIDATION_ERROR_TYPE = "gallery_validation"
INVALID_INPUT_MESSAGE = "Neplatná vstupní data"
UNEXPECTED_ERROR_MESSAGE = "Při zpracování požadavku došlo k chybě"


class GalleryError(Exception):
    """
    Base exception for the gallery API.

    Carries the HTTP status the error maps to; rendered as the standard
    `{success: false, message}` envelope.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": False, "message": self.message}
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(GalleryError):
    """Malformed or missing input."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(GalleryError):
    """Missing, invalid or expired token."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Nejste přihlášeni", **kwargs: Any):
        super().__init__(message, **kwargs)


class AuthorizationError(GalleryError):
    """Authenticated but not permitted."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Nemáte oprávnění k této akci", **kwargs: Any):
        super().__init__(message, **kwargs)


class NotFoundError(GalleryError):
    status_code = status.HTTP_404_NOT_FOUND


class UnexpectedError(GalleryError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def _unexpected_message(exc: Exception) -> str:
    if get_settings().debug:
        return f"{UNEXPECTED_ERROR_MESSAGE}: {exc}"
    return UNEXPECTED_ERROR_MESSAGE


def _validation_message(errors: List[Dict[str, Any]]) -> Optional[str]:
    for error in errors:
        if error.get("type") == VALIDATION_ERROR_TYPE:
            return error.get("msg")
    return None


# PUBLIC_INTERFACE
async def gallery_exception_handler(request: Request, exc: GalleryError) -> JSONResponse:
    """Render a GalleryError as the JSON envelope."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# PUBLIC_INTERFACE
async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Turn request body/query validation failures into 400 responses."""
    errors = exc.errors()
    message = _validation_message(errors)
    if message is not None:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"success": False, "message": message})

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": INVALID_INPUT_MESSAGE,
            "errors": [
                {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg")}
                for error in errors
            ],
        },
    )


# PUBLIC_INTERFACE
async def database_exception_handler(request: Request, exc: psycopg2.Error) -> JSONResponse:
    """Database layer failures become a generic 500."""
    logger.exception(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": _unexpected_message(exc)},
    )


# PUBLIC_INTERFACE
async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for anything not handled above."""
    logger.exception(f"Unexpected error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": _unexpected_message(exc)},
    )
