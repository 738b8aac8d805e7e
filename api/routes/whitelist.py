"""
api/routes/whitelist.py -- Whitelist REST endpoints.

Routes:
  GET    /api/whitelist/check/{id}   -- public decision query
  GET    /api/whitelist/extension    -- full list for the guardian extension
  GET    /api/whitelist              -- full list (human), ?isActive=true|false
  GET    /api/whitelist/{id}         -- one entry (human)
  POST   /api/whitelist              -- add (admin)
  PUT    /api/whitelist/{id}         -- partial update (admin)
  DELETE /api/whitelist/{id}         -- remove (admin)

Layer rule: handlers only map HTTP to whitelist.policy calls. Validation,
conflict detection and the audit trail live in the policy module.
Static paths (check/, extension) are registered before /{id}.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from activity.store import ActivityStore
from api.models import (
    ExtensionDetailResponse,
    ExtensionListResponse,
    ExtensionResponse,
    MessageResponse,
    WhitelistCheckResponse,
    WhitelistCreate,
    WhitelistUpdate,
)
from auth.dependencies import get_current_user, get_extension_id, human_chain
from auth.models import User
from auth.store import UserStore
from core.errors import NotFound
from whitelist import policy
from whitelist.models import WhitelistedExtension
from whitelist.store import ExtensionStore

logger = logging.getLogger("guardian.api.whitelist")

router = APIRouter()


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def _with_adders(request: Request, extensions: list[WhitelistedExtension]) -> list[ExtensionResponse]:
    """Attach the adding admin's name and email; one user query per call."""
    user_store: UserStore = request.app.state.user_store
    adders = user_store.get_many({e.added_by for e in extensions})
    return [ExtensionResponse.from_extension(e, adders.get(e.added_by)) for e in extensions]


def _list_response(request: Request, is_active: Optional[bool]) -> ExtensionListResponse:
    store: ExtensionStore = request.app.state.extension_store
    data = _with_adders(request, store.list_extensions(is_active=is_active))
    return ExtensionListResponse(count=len(data), data=data)


# ---------------------------------------------------------------------------
# Public and extension endpoints
# ---------------------------------------------------------------------------


@router.get("/whitelist/check/{extension_id}", response_model=WhitelistCheckResponse)
def check(request: Request, extension_id: str) -> WhitelistCheckResponse:
    """Answer whether extension_id may run. Unknown or malformed ids are simply not whitelisted."""
    store: ExtensionStore = request.app.state.extension_store
    return WhitelistCheckResponse(is_whitelisted=policy.is_whitelisted(store, extension_id))


@router.get("/whitelist/extension", response_model=ExtensionListResponse)
def list_for_extension(
    request: Request,
    is_active: Optional[bool] = Query(default=None, alias="isActive"),
    extension_id: str = Depends(get_extension_id),
) -> ExtensionListResponse:
    return _list_response(request, is_active)


# ---------------------------------------------------------------------------
# Human endpoints
# ---------------------------------------------------------------------------


@router.get("/whitelist", response_model=ExtensionListResponse, dependencies=human_chain())
def list_whitelist(
    request: Request,
    is_active: Optional[bool] = Query(default=None, alias="isActive"),
) -> ExtensionListResponse:
    return _list_response(request, is_active)


@router.get("/whitelist/{extension_id}", response_model=ExtensionDetailResponse, dependencies=human_chain())
def get_extension(request: Request, extension_id: str) -> ExtensionDetailResponse:
    store: ExtensionStore = request.app.state.extension_store
    ext = store.get(extension_id)
    if ext is None:
        raise NotFound("Extension not found")
    return ExtensionDetailResponse(data=_with_adders(request, [ext])[0])


# ---------------------------------------------------------------------------
# Admin endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/whitelist",
    response_model=ExtensionDetailResponse,
    status_code=201,
    dependencies=human_chain("admin"),
)
def add(
    request: Request,
    body: WhitelistCreate,
    current_user: User = Depends(get_current_user),
) -> ExtensionDetailResponse:
    ext = policy.add_extension(
        request.app.state.extension_store,
        request.app.state.activity_store,
        actor_id=current_user.id,
        extension_id=body.extension_id,
        name=body.name,
        description=body.description,
        version=body.version,
        ip_address=_client_ip(request),
    )
    return ExtensionDetailResponse(data=ExtensionResponse.from_extension(ext, current_user))


@router.put("/whitelist/{extension_id}", response_model=ExtensionDetailResponse, dependencies=human_chain("admin"))
def update(
    request: Request,
    extension_id: str,
    body: WhitelistUpdate,
    current_user: User = Depends(get_current_user),
) -> ExtensionDetailResponse:
    ext = policy.update_extension(
        request.app.state.extension_store,
        request.app.state.activity_store,
        actor_id=current_user.id,
        extension_id=extension_id,
        name=body.name,
        description=body.description,
        version=body.version,
        is_active=body.is_active,
        ip_address=_client_ip(request),
    )
    return ExtensionDetailResponse(data=_with_adders(request, [ext])[0])


@router.delete("/whitelist/{extension_id}", response_model=MessageResponse, dependencies=human_chain("admin"))
def remove(
    request: Request,
    extension_id: str,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    activity: ActivityStore = request.app.state.activity_store
    policy.remove_extension(
        request.app.state.extension_store,
        activity,
        actor_id=current_user.id,
        extension_id=extension_id,
        ip_address=_client_ip(request),
    )
    return MessageResponse(message="Extension removed from whitelist")
