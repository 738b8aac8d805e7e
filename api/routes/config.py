"""
api/routes/config.py -- Runtime configuration REST endpoints.

Routes:
  GET    /api/config            -- merged config for the guardian extension
  GET    /api/config/all        -- every key with its override metadata (admin)
  GET    /api/config/{key}      -- one key (admin)
  PUT    /api/config            -- write overrides (admin)
  POST   /api/config/reset      -- drop overrides, keep the guardian id (admin)
  DELETE /api/config/{key}      -- drop one override (admin)

Merge and guardian-id rules live in extconfig.runtime; handlers only shape
the responses. /config/all and /config/reset are registered before /{key}.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from api.models import ConfigResponse, ConfigUpdate
from auth.dependencies import get_current_user, get_extension_id, human_chain
from auth.models import User
from extconfig import runtime
from extconfig.store import ConfigStore

logger = logging.getLogger("guardian.api.config")

router = APIRouter()


@router.get("/config", response_model=ConfigResponse)
def get_config(request: Request, extension_id: str = Depends(get_extension_id)) -> ConfigResponse:
    """Merged config. The first extension to call this becomes the guardian."""
    store: ConfigStore = request.app.state.config_store
    return ConfigResponse(data=runtime.read_for_extension(store, extension_id))


@router.get("/config/all", response_model=ConfigResponse, dependencies=human_chain("admin"))
def get_all(request: Request) -> ConfigResponse:
    store: ConfigStore = request.app.state.config_store
    entries = runtime.list_all(store)
    return ConfigResponse(count=len(entries), data=entries)


@router.post("/config/reset", response_model=ConfigResponse, dependencies=human_chain("admin"))
def reset_config(request: Request, current_user: User = Depends(get_current_user)) -> ConfigResponse:
    store: ConfigStore = request.app.state.config_store
    return ConfigResponse(message="Configuration reset to defaults", data=runtime.reset(store, current_user.id))


@router.put("/config", response_model=ConfigResponse, dependencies=human_chain("admin"))
def update_config(
    request: Request,
    body: ConfigUpdate,
    current_user: User = Depends(get_current_user),
) -> ConfigResponse:
    """Write the sent keys as overrides. Unknown keys are dropped silently."""
    store: ConfigStore = request.app.state.config_store
    written, merged = runtime.apply_updates(store, body.to_updates(), current_user.id)
    return ConfigResponse(
        message="Configuration updated",
        updates=[runtime.entry_view(e) for e in written],
        data=merged,
    )


@router.get("/config/{key}", response_model=ConfigResponse, dependencies=human_chain("admin"))
def get_value(request: Request, key: str) -> ConfigResponse:
    store: ConfigStore = request.app.state.config_store
    return ConfigResponse(data=runtime.get_value(store, key))


@router.delete("/config/{key}", response_model=ConfigResponse, dependencies=human_chain("admin"))
def delete_value(request: Request, key: str) -> ConfigResponse:
    store: ConfigStore = request.app.state.config_store
    return ConfigResponse(message=f"Configuration {key} reset to default", data=runtime.delete_value(store, key))
