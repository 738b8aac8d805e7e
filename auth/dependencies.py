"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two independent trust boundaries, modelled as separate dependencies that
share no state:

  Human chain:
    extract_bearer_token()  -- Authorization: Bearer header, then "token" cookie
    get_current_user()      -- verify JWT, re-load the user, attach to
                               request.state.user (401 otherwise)
    require_roles(*roles)   -- role gate over request.state.user (401 / 403)

  Extension chain:
    get_extension_id()      -- X-Extension-ID + X-API-Key, attach to
                               request.state.extension_id (401 otherwise)

The extension chain never reads the user store and never writes
request.state.user; a request can be extension-authenticated without any human
principal, or the reverse.

try_get_current_user() is the soft variant (returns None on failure) for
routes where authentication only elevates, such as registration.

Layer rule: may import fastapi, auth/ and core/. No imports from api/,
whitelist/, activity/, or extconfig/.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request

from auth.extension_keys import verify_extension_key
from auth.models import User
from auth.tokens import AUTH_COOKIE, TokenFailure, verify_access_token
from core.errors import Forbidden, Unauthenticated

logger = logging.getLogger("guardian.auth")

EXTENSION_ID_HEADER = "x-extension-id"
EXTENSION_KEY_HEADER = "x-api-key"


# ---------------------------------------------------------------------------
# Credential extraction
# ---------------------------------------------------------------------------


def extract_bearer_token(request: Request) -> str | None:
    """Return the first available bearer token, or None for an anonymous request.

    Precedence:
      1. Authorization: Bearer <token> -- extension and API clients.
      2. "token" cookie -- admin UI after login.
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(AUTH_COOKIE) or None


# ---------------------------------------------------------------------------
# Human chain
# ---------------------------------------------------------------------------


def get_current_user(request: Request) -> User:
    """Require a valid bearer token for an existing user.

    Tokens are stateless, so the user is re-loaded on every request: a token
    minted for a user who has since been deleted is rejected here.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(request: Request, user: User = Depends(get_current_user)): ...
    """
    token = extract_bearer_token(request)
    if token is None:
        raise Unauthenticated("Not authorized to access this route")

    result = verify_access_token(token)
    if result is TokenFailure.EXPIRED:
        raise Unauthenticated("Token expired")
    if isinstance(result, TokenFailure):
        raise Unauthenticated("Invalid token")

    user = request.app.state.user_store.get_by_id(result)
    if user is None:
        raise Unauthenticated("User no longer exists")

    request.state.user = user
    return user


def try_get_current_user(request: Request) -> User | None:
    """Soft variant of get_current_user(). Never raises; returns None instead."""
    if extract_bearer_token(request) is None:
        return None
    try:
        return get_current_user(request)
    except Unauthenticated:
        return None


def require_roles(*roles: str):
    """Build a role gate that admits only the given roles.

    The gate reads request.state.user and must run after get_current_user();
    see human_chain(). It performs no I/O.
    """

    def role_gate(request: Request) -> User:
        user: User | None = getattr(request.state, "user", None)
        if user is None:
            raise Unauthenticated("Not authorized to access this route")
        if user.role not in roles:
            raise Forbidden(f"User role {user.role} is not authorized to access this route")
        return user

    role_gate.__name__ = f"require_{'_'.join(roles) or 'none'}"
    role_gate.roles = roles
    return role_gate


def human_chain(*roles: str) -> list:
    """Route-level dependency list: authenticate, then (optionally) gate on role.

    FastAPI resolves route dependencies in order, so the gate always sees the
    principal attached by get_current_user():

        @router.post("/whitelist", dependencies=human_chain("admin"))
    """
    chain = [Depends(get_current_user)]
    if roles:
        chain.append(Depends(require_roles(*roles)))
    return chain


# ---------------------------------------------------------------------------
# Extension chain
# ---------------------------------------------------------------------------


def get_extension_id(request: Request) -> str:
    """Require guardian-extension credentials. Returns the extension id.

    Use as a FastAPI dependency:
        @router.get("/config")
        def route(request: Request, extension_id: str = Depends(get_extension_id)): ...
    """
    extension_id = request.headers.get(EXTENSION_ID_HEADER, "")
    api_key = request.headers.get(EXTENSION_KEY_HEADER, "")
    if not extension_id or not api_key:
        raise Unauthenticated("Extension authentication required")

    valid = verify_extension_key(extension_id, api_key)
    logger.debug("Extension auth attempt: id=%s valid=%s", extension_id, valid)
    if not valid:
        logger.warning("Rejected extension credentials for id=%s", extension_id)
        raise Unauthenticated("Invalid extension credentials")

    request.state.extension_id = extension_id
    return extension_id
