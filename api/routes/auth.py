"""
api/routes/auth.py -- Authentication and user management REST endpoints.

Routes:
  POST   /api/auth/register          -- create account; 201 + token + user
  POST   /api/auth/login             -- password login; sets "token" cookie
  GET    /api/auth/me                -- current user (human)
  PUT    /api/auth/update-details    -- change display name (human)
  PUT    /api/auth/update-password   -- change password, re-mint token (human)
  POST   /api/auth/logout            -- clear cookie, log LOGOUT (human)
  GET    /api/auth/users             -- list users (admin)
  DELETE /api/auth/users/{id}        -- delete user, never yourself (admin)

Security:
  POST /login and /register are rate-limited per IP.
  authenticate_user() provides timing equalization -- use it, never inline.
  Cache-Control: no-store on every response that carries a token.
  Registration ignores role=admin unless the caller is already an admin.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from activity.models import ActivityAction, ActivityLog
from activity.store import ActivityStore
from api.limiter import limiter
from api.models import (
    AuthResponse,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    RoleEnum,
    UpdateDetailsRequest,
    UpdatePasswordRequest,
    UserListResponse,
    UserResponse,
)
from auth.dependencies import get_current_user, human_chain, require_roles, try_get_current_user
from auth.models import User
from auth.store import UserStore
from auth.tokens import (
    AUTH_COOKIE,
    authenticate_user,
    create_access_token,
    hash_password,
    set_auth_cookie,
    verify_password,
)
from core.config import get_settings
from core.errors import Conflict, InternalFailure, NotFound, Unauthenticated

logger = logging.getLogger("guardian.api.auth")

_settings = get_settings()

# Auth policy:
# - POST   /auth/register:        public; admin role requires an admin caller
# - POST   /auth/login:           public
# - GET    /auth/me:              human
# - PUT    /auth/update-details:  human
# - PUT    /auth/update-password: human
# - POST   /auth/logout:          human
# - GET    /auth/users:           admin
# - DELETE /auth/users/{id}:      admin; own id is refused for every role
router = APIRouter()


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def _token_response(body: AuthResponse, token: str, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _log_session_event(request: Request, user: User, action: ActivityAction, method: str | None = None) -> None:
    activity: ActivityStore = request.app.state.activity_store
    activity.create_log(
        ActivityLog(
            user_id=str(user.id),
            action=action.value,
            ip_address=_client_ip(request),
            details={"method": method} if method else {},
        )
    )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.login_rate_limit)
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a user account and return a token for it.

    Anyone may self-register as "user". role="admin" is honoured only when the
    request itself carries a valid admin token.
    """
    user_store: UserStore = request.app.state.user_store

    if user_store.get_by_email(body.email) is not None:
        raise Conflict("Email already registered")

    role = RoleEnum.user.value
    if body.role is RoleEnum.admin:
        caller = try_get_current_user(request)
        if caller is not None and caller.role == RoleEnum.admin.value:
            role = RoleEnum.admin.value

    try:
        user_id = user_store.create_user(
            User(email=body.email, name=body.name, role=role, hashed_password=hash_password(body.password))
        )
    except IntegrityError as exc:
        raise Conflict("Email already registered") from exc

    user_store.update_last_login(user_id)
    user = user_store.get_by_id(user_id)
    if user is None:
        raise InternalFailure("Failed to register user")
    _log_session_event(request, user, ActivityAction.LOGIN, method="registration")
    logger.info("Registered user %s (role=%s)", user.id, user.role)

    token = create_access_token(user.id)
    return _token_response(AuthResponse(token=token, user=UserResponse.from_user(user)), token, status_code=201)


@limiter.limit(_settings.login_rate_limit)
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the token cookie.

    Returns the same error for unknown email and wrong password so responses
    do not reveal which emails are registered.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        raise Unauthenticated("Invalid credentials")

    user_store.update_last_login(user.id)
    _log_session_event(request, user, ActivityAction.LOGIN, method="standard")
    user = user_store.get_by_id(user.id) or user

    token = create_access_token(user.id)
    return _token_response(AuthResponse(token=token, user=UserResponse.from_user(user)), token)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return the authenticated user. The password hash is never included."""
    return MeResponse(user=UserResponse.from_user(current_user))


@router.put("/auth/update-details", response_model=MeResponse)
def update_details(
    request: Request,
    body: UpdateDetailsRequest,
    current_user: User = Depends(get_current_user),
) -> MeResponse:
    user_store: UserStore = request.app.state.user_store
    if not user_store.update_user(current_user.id, name=body.name):
        raise Unauthenticated("User no longer exists")
    updated = user_store.get_by_id(current_user.id)
    if updated is None:
        raise Unauthenticated("User no longer exists")
    return MeResponse(user=UserResponse.from_user(updated))


@router.put("/auth/update-password", response_model=AuthResponse)
def update_password(
    request: Request,
    body: UpdatePasswordRequest,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Change the password after re-checking the current one; returns a fresh token.

    Tokens minted before the change stay valid until they expire -- there is
    no revocation list.
    """
    user_store: UserStore = request.app.state.user_store
    if not current_user.hashed_password or not verify_password(body.current_password, current_user.hashed_password):
        raise Unauthenticated("Current password is incorrect")

    user_store.update_user(current_user.id, hashed_password=hash_password(body.new_password))
    logger.info("Password changed for user %s", current_user.id)

    token = create_access_token(current_user.id)
    return _token_response(AuthResponse(token=token, message="Password updated"), token)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Log the LOGOUT event and clear the cookie. The token itself stays valid until expiry."""
    _log_session_event(request, current_user, ActivityAction.LOGOUT)
    resp = JSONResponse(content=MessageResponse(message="Logged out successfully").model_dump(by_alias=True))
    resp.delete_cookie(AUTH_COOKIE)
    return resp


# ---------------------------------------------------------------------------
# User management (admin only)
# ---------------------------------------------------------------------------


@router.get("/auth/users", response_model=UserListResponse, dependencies=human_chain("admin"))
def list_users(request: Request) -> UserListResponse:
    user_store: UserStore = request.app.state.user_store
    users = [UserResponse.from_user(u) for u in user_store.list_users()]
    return UserListResponse(count=len(users), users=users)


@router.delete("/auth/users/{user_id}", response_model=MessageResponse)
def delete_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    """Delete another user's account (admin).

    Deleting your own account is rejected with 400 before the role gate runs,
    so the answer is the same for every role.
    """
    if user_id == current_user.id:
        raise Conflict("You cannot delete your own account")
    require_roles("admin")(request)

    user_store: UserStore = request.app.state.user_store
    if user_store.get_by_id(user_id) is None:
        raise NotFound("User not found")

    user_store.delete_user(user_id)
    logger.info("User %s deleted by admin %s", user_id, current_user.id)
    return MessageResponse(message="User deleted successfully")
