import re
from datetime import date as date_type, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from furry_gallery.exceptions import VALIDATION_ERROR_TYPE

REGISTER_EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
CONTACT_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
WEBSITE_RE = re.compile(r"^(https?:\/\/)?([\da-z\.-]+)\.([a-z\.]{2,6})([\/\w \.-]*)*\/?$")
STRONG_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


def invalid(message: str) -> PydanticCustomError:
    """Validation error whose message is returned to the client verbatim."""
    return PydanticCustomError(VALIDATION_ERROR_TYPE, message)


def _blank(value: Optional[str]) -> bool:
    return value is None or value.strip() == ""


class UserRole(str, Enum):
    user = "user"
    admin = "admin"


class SortOrder(str, Enum):
    asc = "ASC"
    desc = "DESC"


# =========================
# Envelopes
# =========================

class APIMessage(BaseModel):
    success: bool = True
    message: str = Field(..., description="Human readable message")


class Pagination(BaseModel):
    page: int
    limit: int
    totalItems: int
    totalPages: int


# =========================
# Users / auth
# =========================

class User(BaseModel):
    """User row without the password hash."""

    id: int
    username: str
    email: str
    is_active: bool = True
    photographer_id: Optional[int] = None
    organizer_id: Optional[int] = None
    avatar_id: Optional[int] = None
    role: str = UserRole.user.value
    created_at: Optional[datetime] = None

    @field_validator("role", mode="before")
    @classmethod
    def _default_role(cls, value: Optional[str]) -> str:
        return value or UserRole.user.value


class TokenPayload(BaseModel):
    user_id: int
    username: str
    email: str
    photographer_id: Optional[int] = None
    organizer_id: Optional[int] = None
    role: str = UserRole.user.value

    @classmethod
    def for_user(cls, user: Dict[str, Any]) -> "TokenPayload":
        return cls(
            user_id=user["id"],
            username=user["username"],
            email=user["email"],
            photographer_id=user.get("photographer_id"),
            organizer_id=user.get("organizer_id"),
            role=user.get("role") or UserRole.user.value,
        )


class OperationResult(BaseModel):
    success: bool
    message: Optional[str] = None


class LoginResult(OperationResult):
    token: Optional[str] = None
    user: Optional[User] = None


class RegisterResult(OperationResult):
    userId: Optional[int] = None


class UserResult(OperationResult):
    user: Optional[User] = None


class AuthenticationResult(BaseModel):
    authenticated: bool
    user: Optional[User] = None
    message: Optional[str] = None


class RegisterRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

    @model_validator(mode="after")
    def _check(self) -> "RegisterRequest":
        if not self.username or not self.email or not self.password:
            raise invalid("Chybějící povinné údaje")
        if not REGISTER_EMAIL_RE.search(self.email):
            raise invalid("Neplatný formát emailu")
        if len(self.username) < 3:
            raise invalid("Uživatelské jméno musí mít alespoň 3 znaky")
        if len(self.password) < 6:
            raise invalid("Heslo musí mít alespoň 6 znaků")
        return self


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None

    @model_validator(mode="after")
    def _check(self) -> "LoginRequest":
        if not self.username or not self.password:
            raise invalid("Uživatelské jméno a heslo jsou povinné")
        return self


class PasswordChangeRequest(BaseModel):
    currentPassword: Optional[str] = None
    newPassword: Optional[str] = None

    @model_validator(mode="after")
    def _check(self) -> "PasswordChangeRequest":
        if not self.currentPassword or not self.newPassword:
            raise invalid("Současné i nové heslo jsou povinné údaje")
        if len(self.newPassword) < 8:
            raise invalid("Nové heslo musí mít alespoň 8 znaků")
        if not STRONG_PASSWORD_RE.search(self.newPassword):
            raise invalid("Heslo musí obsahovat alespoň jedno velké písmeno, jedno malé písmeno a jednu číslici")
        return self


class UserUpdate(BaseModel):
    username: Optional[str] = Field(None, description="New username")
    email: Optional[EmailStr] = Field(None, description="New email address")

    @model_validator(mode="after")
    def _check(self) -> "UserUpdate":
        if _blank(self.username) or self.email is None:
            raise invalid("Uživatelské jméno a e-mail jsou povinné údaje")
        self.username = self.username.strip()
        if len(self.username) < 3:
            raise invalid("Uživatelské jméno musí mít alespoň 3 znaky")
        return self


# =========================
# Profiles
# =========================

class PhotographerData(BaseModel):
    name: Optional[str] = None
    bio: Optional[str] = None
    profile: Optional[str] = None

    @model_validator(mode="after")
    def _check(self) -> "PhotographerData":
        if _blank(self.name):
            raise invalid("Jméno fotografa je povinné")
        return self


class OrganizerData(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    contact_email: Optional[str] = None
    website: Optional[str] = None

    @model_validator(mode="after")
    def _check(self) -> "OrganizerData":
        if _blank(self.name):
            raise invalid("Název organizátora je povinný")
        if self.contact_email and not CONTACT_EMAIL_RE.match(self.contact_email):
            raise invalid("Neplatný formát e-mailu")
        if self.website and not WEBSITE_RE.match(self.website):
            raise invalid("Neplatný formát URL")
        return self


class EventData(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    date: Optional[date_type] = None
    organizer_id: Optional[int] = Field(None, description="Admins only; organizers always use their own profile")
    cover_image_id: Optional[int] = None

    @model_validator(mode="after")
    def _check(self) -> "EventData":
        if _blank(self.name):
            raise invalid("Název události je povinný")
        if _blank(self.location):
            raise invalid("Místo konání je povinné")
        if self.date is None:
            raise invalid("Datum události je povinné")
        return self


# =========================
# Photos / tags
# =========================

class TagsUpdate(BaseModel):
    tags: List[str] = Field(default_factory=list, description="Complete set of tag names for the photo")

    @field_validator("tags")
    @classmethod
    def _normalize(cls, value: List[str]) -> List[str]:
        seen: List[str] = []
        for name in value:
            name = name.strip()
            if not name:
                continue
            if len(name) > 100:
                raise invalid("Název tagu může mít nejvýše 100 znaků")
            if name not in seen:
                seen.append(name)
        return seen


class LikeResponse(BaseModel):
    success: bool = True
    liked: bool
    changed: bool
    likes: int


# =========================
# Photographer takeover
# =========================

class TakeoverStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class TakeoverRequestData(BaseModel):
    reason: Optional[str] = Field(None, description="Why the profile belongs to the requesting user")

    @field_validator("reason")
    @classmethod
    def _limit(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value) > 2000:
            raise invalid("Zdůvodnění může mít nejvýše 2000 znaků")
        return value.strip() if value else None


class TakeoverDecision(BaseModel):
    """Admin verdict on a pending takeover request."""

    status: Optional[str] = None
    admin_note: Optional[str] = None

    @model_validator(mode="after")
    def _check(self) -> "TakeoverDecision":
        if self.status not in (TakeoverStatus.approved.value, TakeoverStatus.rejected.value):
            raise invalid("Stav žádosti musí být approved nebo rejected")
        return self
