"""
API request and response models for the guardian REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/, whitelist/, activity/
and extconfig/, which own the internal domain representation. Route handlers
map between the two.

Wire format is camelCase (the extension and admin UI were built against it);
Python attributes stay snake_case via alias_generator=to_camel. FastAPI
serializes response models by alias, so handlers return models directly.

No response model has a password field: UserResponse.from_user() copies named
fields only.
"""

import math
import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from activity.models import ActivityAction, ActivityLog
from auth.models import User
from whitelist.models import WhitelistedExtension

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
EXTENSION_ID_PATTERN = r"^[a-z]{32}$"

_PASSWORD_RULES = (
    re.compile(r"[a-z]"),
    re.compile(r"[A-Z]"),
    re.compile(r"\d"),
    re.compile(r"[@$!%*?&]"),
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


def _check_password_strength(value: str) -> str:
    if not all(rule.search(value) for rule in _PASSWORD_RULES):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, "
            "one number and one special character"
        )
    return value


class RegisterRequest(_CamelModel):
    """Request body for POST /api/auth/register.

    role is only honoured when the caller is an authenticated admin; everyone
    else is registered as "user" regardless of what they send.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=50)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=128)
    role: Optional[RoleEnum] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return _check_password_strength(value)


class LoginRequest(_CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class UpdateDetailsRequest(_CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=50)


class UpdatePasswordRequest(_CamelModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return _check_password_strength(value)


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserResponse(_CamelModel):
    id: int
    name: str
    email: str
    role: str
    last_login: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            last_login=user.last_login,
            created_at=user.created_at,
        )


class AuthResponse(_CamelModel):
    """Response for register, login and password change."""

    success: bool = True
    token: str
    user: Optional[UserResponse] = None
    message: Optional[str] = None


class MeResponse(_CamelModel):
    success: bool = True
    user: UserResponse


class UserListResponse(_CamelModel):
    success: bool = True
    count: int
    users: list[UserResponse]


class MessageResponse(_CamelModel):
    success: bool = True
    message: str


# ---------------------------------------------------------------------------
# Whitelist
# ---------------------------------------------------------------------------


class WhitelistCreate(_CamelModel):
    """Request body for POST /api/whitelist.

    Shape and length rules are enforced by whitelist.policy so direct callers
    of the policy get the same checks as HTTP callers.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    extension_id: str
    name: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None


class WhitelistUpdate(_CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    is_active: Optional[bool] = None


class AddedBy(_CamelModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None


class ExtensionResponse(_CamelModel):
    extension_id: str
    name: str
    description: Optional[str] = None
    version: Optional[str] = None
    is_active: bool
    added_by: AddedBy
    added_date: str
    updated_at: str

    @classmethod
    def from_extension(cls, ext: WhitelistedExtension, adder: Optional[User] = None) -> "ExtensionResponse":
        """Build the wire view; adder fills in name/email when the admin still exists."""
        return cls(
            extension_id=ext.extension_id,
            name=ext.name,
            description=ext.description,
            version=ext.version,
            is_active=ext.is_active,
            added_by=AddedBy(
                id=ext.added_by,
                name=adder.name if adder else None,
                email=adder.email if adder else None,
            ),
            added_date=ext.added_date,
            updated_at=ext.updated_at,
        )


class ExtensionListResponse(_CamelModel):
    success: bool = True
    count: int
    data: list[ExtensionResponse]


class ExtensionDetailResponse(_CamelModel):
    success: bool = True
    data: ExtensionResponse


class WhitelistCheckResponse(_CamelModel):
    success: bool = True
    is_whitelisted: bool


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------


class ActivityCreate(_CamelModel):
    """Request body for POST /api/activity (guardian extension only).

    The origin address is taken from the connection, never from the body.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(min_length=1, max_length=255)
    action: ActivityAction
    extension_id: Optional[str] = Field(default=None, max_length=64)
    browser_info: Optional[dict[str, Any]] = None
    details: Optional[dict[str, Any]] = None


class ActivityResponse(_CamelModel):
    id: int
    user_id: str
    action: str
    extension_id: Optional[str] = None
    browser_info: dict[str, Any] = Field(default_factory=dict)
    details: dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    timestamp: str

    @classmethod
    def from_log(cls, log: ActivityLog) -> "ActivityResponse":
        return cls(
            id=log.id,
            user_id=log.user_id,
            action=log.action,
            extension_id=log.extension_id,
            browser_info=log.browser_info,
            details=log.details,
            ip_address=log.ip_address,
            timestamp=log.timestamp,
        )


class ActivityCreatedResponse(_CamelModel):
    success: bool = True
    data: ActivityResponse


class Pagination(_CamelModel):
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "Pagination":
        return cls(total=total, page=page, limit=limit, pages=math.ceil(total / limit) if limit else 0)


class ActivityListResponse(_CamelModel):
    success: bool = True
    count: int
    data: list[ActivityResponse]
    pagination: Optional[Pagination] = None


class ActivityStatsResponse(_CamelModel):
    success: bool = True
    data: dict[str, list[dict[str, Any]]]


# ---------------------------------------------------------------------------
# Runtime config
# ---------------------------------------------------------------------------


class ClearItems(BaseModel):
    """Partial update of the clearItems object; unset flags keep their value."""

    model_config = ConfigDict(extra="forbid")

    cookies: Optional[bool] = None
    localStorage: Optional[bool] = None  # noqa: N815 -- wire name
    sessionStorage: Optional[bool] = None  # noqa: N815
    indexedDB: Optional[bool] = None  # noqa: N815
    cache: Optional[bool] = None
    history: Optional[bool] = None


class ConfigUpdate(_CamelModel):
    """Request body for PUT /api/config. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    enable_notifications: Optional[bool] = None
    clear_on_disable: Optional[bool] = None
    clear_on_close: Optional[bool] = None
    clear_items: Optional[ClearItems] = None
    request_timeout_ms: Optional[int] = Field(default=None, ge=100, le=600_000)
    heartbeat_interval_ms: Optional[int] = Field(default=None, ge=100, le=3_600_000)
    check_interval_ms: Optional[int] = Field(default=None, ge=100, le=3_600_000)
    api_retry_attempts: Optional[int] = Field(default=None, ge=0, le=20)
    api_retry_delay_ms: Optional[int] = Field(default=None, ge=0, le=600_000)
    guardian_extension_id: Optional[str] = Field(default=None, pattern=EXTENSION_ID_PATTERN)
    debug_mode: Optional[bool] = None

    @field_validator("*", mode="before")
    @classmethod
    def reject_null(cls, v: Any) -> Any:
        # Optional only marks a key as omittable; DELETE /config/{key} restores a default.
        if v is None:
            raise ValueError("Value cannot be null")
        return v

    def to_updates(self) -> dict[str, Any]:
        """Return only the keys the caller sent, under their wire names."""
        updates = self.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
        if self.clear_items is not None:
            updates["clearItems"] = self.clear_items.model_dump(exclude_none=True)
        return updates


class ConfigResponse(_CamelModel):
    success: bool = True
    message: Optional[str] = None
    data: Any
    updates: Optional[list[dict[str, Any]]] = None
    count: Optional[int] = None


# ---------------------------------------------------------------------------
# Envelope / health
# ---------------------------------------------------------------------------


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    message: str
    code: str
    errors: Optional[list[FieldError]] = None


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
