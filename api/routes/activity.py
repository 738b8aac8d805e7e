"""
api/routes/activity.py -- Activity log REST endpoints.

Routes:
  POST /api/activity                    -- guardian extension reports an event
  GET  /api/activity/user/{userId}      -- one actor's entries (self or admin)
  GET  /api/activity                    -- paginated, filtered log (admin)
  GET  /api/activity/stats              -- dashboard aggregates (admin)
  GET  /api/activity/extension/{id}     -- entries for one extension (admin)

The log is append-only; no route updates or deletes entries. The origin
address is always taken from the connection, never from the request body.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from activity.models import ActivityAction, ActivityLog
from activity.store import ActivityStore
from api.models import (
    ActivityCreate,
    ActivityCreatedResponse,
    ActivityListResponse,
    ActivityResponse,
    ActivityStatsResponse,
    Pagination,
)
from auth.dependencies import get_current_user, get_extension_id, human_chain
from auth.models import User
from core.errors import Forbidden, ValidationFailed

logger = logging.getLogger("guardian.api.activity")

router = APIRouter()


def _parse_bound(raw: str, field: str) -> str:
    """Normalize an ISO 8601 date or datetime to the stored UTC text form.

    Naive values are read as UTC.
    """
    try:
        parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationFailed(errors=[{"field": field, "message": "Must be an ISO 8601 date"}]) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Extension endpoint
# ---------------------------------------------------------------------------


@router.post("/activity", response_model=ActivityCreatedResponse, status_code=201)
def log_activity(
    request: Request,
    body: ActivityCreate,
    extension_id: str = Depends(get_extension_id),
) -> ActivityCreatedResponse:
    activity: ActivityStore = request.app.state.activity_store
    entry = activity.create_log(
        ActivityLog(
            user_id=body.user_id,
            action=body.action.value,
            extension_id=body.extension_id,
            browser_info=body.browser_info or {},
            details=body.details or {},
            ip_address=request.client.host if request.client else None,
        )
    )
    if body.action is ActivityAction.WHITELIST_VIOLATION:
        logger.warning("Whitelist violation reported by %s: %s", extension_id, body.extension_id)
    return ActivityCreatedResponse(data=ActivityResponse.from_log(entry))


# ---------------------------------------------------------------------------
# Human endpoints
# ---------------------------------------------------------------------------


@router.get("/activity/user/{user_id}", response_model=ActivityListResponse)
def list_for_user(
    request: Request,
    user_id: str,
    limit: int = Query(default=100, ge=1, le=1000),
    current_user: User = Depends(get_current_user),
) -> ActivityListResponse:
    """Entries for one actor. Non-admins may only read their own."""
    if current_user.role != "admin" and str(current_user.id) != user_id:
        raise Forbidden("Not authorized to view these logs")
    activity: ActivityStore = request.app.state.activity_store
    data = [ActivityResponse.from_log(e) for e in activity.list_by_user(user_id, limit=limit)]
    return ActivityListResponse(count=len(data), data=data)


# ---------------------------------------------------------------------------
# Admin endpoints
# ---------------------------------------------------------------------------


@router.get("/activity", response_model=ActivityListResponse, dependencies=human_chain("admin"))
def list_all(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=1000),
    action: Optional[ActivityAction] = Query(default=None),
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
) -> ActivityListResponse:
    """One page of the log, newest first.

    The date range applies only when both startDate and endDate are given.
    """
    start = end = None
    if start_date and end_date:
        start = _parse_bound(start_date, "startDate")
        end = _parse_bound(end_date, "endDate")

    activity: ActivityStore = request.app.state.activity_store
    entries, total = activity.list_page(
        page=page,
        limit=limit,
        action=action.value if action else None,
        start=start,
        end=end,
    )
    data = [ActivityResponse.from_log(e) for e in entries]
    return ActivityListResponse(count=len(data), data=data, pagination=Pagination.build(total, page, limit))


@router.get("/activity/stats", response_model=ActivityStatsResponse, dependencies=human_chain("admin"))
def stats(request: Request) -> ActivityStatsResponse:
    activity: ActivityStore = request.app.state.activity_store
    return ActivityStatsResponse(data=activity.get_stats())


@router.get(
    "/activity/extension/{extension_id}",
    response_model=ActivityListResponse,
    dependencies=human_chain("admin"),
)
def list_for_extension(
    request: Request,
    extension_id: str,
    limit: int = Query(default=100, ge=1, le=1000),
) -> ActivityListResponse:
    activity: ActivityStore = request.app.state.activity_store
    data = [ActivityResponse.from_log(e) for e in activity.list_by_extension(extension_id, limit=limit)]
    return ActivityListResponse(count=len(data), data=data)
