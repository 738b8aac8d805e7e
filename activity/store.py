"""
activity/store.py -- SQLAlchemy Core persistence for the activity log.

Pattern: Repository + Data Mapper. The table is append-only: this store
exposes inserts and reads, never updates or deletes.

browser_info and details are arbitrary JSON objects serialized to TEXT.
Timestamps are ISO 8601 UTC strings, so lexical order is chronological order
and date-range filters are plain string comparisons.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from activity.models import ActivityLog
from core.config import get_settings, now_iso
from core.db import make_engine

_metadata = MetaData()

_activity = Table(
    "activity_logs",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(255), nullable=False, index=True),
    Column("action", String(40), nullable=False),
    Column("extension_id", String(64), index=True),
    Column("browser_info", Text),
    Column("details", Text),
    Column("ip_address", String(45)),
    Column("timestamp", String(32), nullable=False, index=True),
    Index("ix_activity_user_action_ts", "user_id", "action", "timestamp"),
)

_STATS_WINDOW_DAYS = 30
_TOP_USERS = 10


class ActivityStore:
    """Repository for ActivityLog entries."""

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_log(self, entry: ActivityLog) -> ActivityLog:
        """Append an entry and return it with id and timestamp filled in."""
        timestamp = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _activity.insert().values(
                    user_id=entry.user_id,
                    action=entry.action,
                    extension_id=entry.extension_id or None,
                    browser_info=json.dumps(entry.browser_info or {}),
                    details=json.dumps(entry.details or {}),
                    ip_address=entry.ip_address,
                    timestamp=timestamp,
                )
            )
            conn.commit()
            log_id = result.inserted_primary_key[0]
        return ActivityLog(
            id=log_id,
            user_id=entry.user_id,
            action=entry.action,
            extension_id=entry.extension_id or None,
            browser_info=entry.browser_info or {},
            details=entry.details or {},
            ip_address=entry.ip_address,
            timestamp=timestamp,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_by_user(self, user_id: str, limit: int = 100) -> list[ActivityLog]:
        """Most recent entries for one actor, newest first."""
        return self._fetch(_activity.c.user_id == user_id, limit=limit)

    def list_by_extension(self, extension_id: str, limit: int = 100) -> list[ActivityLog]:
        """Most recent entries mentioning one extension, newest first."""
        return self._fetch(_activity.c.extension_id == extension_id, limit=limit)

    def list_page(
        self,
        page: int = 1,
        limit: int = 50,
        action: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> tuple[list[ActivityLog], int]:
        """Return (entries, total) for one page of the filtered log.

        start/end are ISO 8601 bounds, inclusive; both must be given for the
        range filter to apply.
        """
        conditions = []
        if action:
            conditions.append(_activity.c.action == action)
        if start and end:
            conditions.append(_activity.c.timestamp >= start)
            conditions.append(_activity.c.timestamp <= end)

        count_query = select(func.count()).select_from(_activity)
        for cond in conditions:
            count_query = count_query.where(cond)
        with self.engine.connect() as conn:
            total = conn.execute(count_query).scalar() or 0

        entries = self._fetch(*conditions, limit=limit, offset=(page - 1) * limit)
        return entries, total

    def get_stats(self) -> dict:
        """Aggregate counts for the admin dashboard.

        actionCounts -- entries per action, most frequent first
        dailyCounts  -- entries per UTC day over the last 30 days, oldest first
        activeUsers  -- top 10 actors by entry count
        """
        since = (datetime.now(timezone.utc) - timedelta(days=_STATS_WINDOW_DAYS)).isoformat()
        count = func.count().label("count")
        day = func.substr(_activity.c.timestamp, 1, 10).label("day")
        with self.engine.connect() as conn:
            action_rows = conn.execute(
                select(_activity.c.action, count).group_by(_activity.c.action).order_by(count.desc())
            ).fetchall()
            daily_rows = conn.execute(
                select(day, count).where(_activity.c.timestamp >= since).group_by(day).order_by(day)
            ).fetchall()
            user_rows = conn.execute(
                select(_activity.c.user_id, count)
                .group_by(_activity.c.user_id)
                .order_by(count.desc())
                .limit(_TOP_USERS)
            ).fetchall()
        return {
            "actionCounts": [{"_id": r.action, "count": r.count} for r in action_rows],
            "dailyCounts": [{"_id": r.day, "count": r.count} for r in daily_rows],
            "activeUsers": [{"_id": r.user_id, "count": r.count} for r in user_rows],
        }

    def _fetch(self, *conditions, limit: int, offset: int = 0) -> list[ActivityLog]:
        query = _activity.select()
        for cond in conditions:
            query = query.where(cond)
        query = query.order_by(_activity.c.timestamp.desc(), _activity.c.id.desc()).limit(limit).offset(offset)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_log(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


def _row_to_log(row) -> ActivityLog:
    return ActivityLog(
        id=row.id,
        user_id=row.user_id,
        action=row.action,
        extension_id=row.extension_id,
        browser_info=json.loads(row.browser_info) if row.browser_info else {},
        details=json.loads(row.details) if row.details else {},
        ip_address=row.ip_address,
        timestamp=row.timestamp,
    )
