"""
extconfig/store.py -- SQLAlchemy Core persistence for runtime config overrides.

Only the override layer is stored. Defaults live in code
(extconfig/runtime.py) and are merged on read, so a deleted override falls
back to its default without a migration.

Values are JSON-encoded into TEXT so booleans, numbers, nested objects and
null round-trip unchanged.
"""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.config import get_settings, now_iso
from core.db import make_engine
from extconfig.models import ConfigEntry

_metadata = MetaData()

_config = Table(
    "config_overrides",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("key", String(100), nullable=False, unique=True),
    Column("value", Text, nullable=False),
    Column("description", Text),
    Column("updated_by", Integer),
    Column("updated_at", String(32), nullable=False),
)


class ConfigStore:
    """Repository for ConfigEntry overrides."""

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    def list_entries(self) -> list[ConfigEntry]:
        with self.engine.connect() as conn:
            rows = conn.execute(_config.select().order_by(_config.c.key)).fetchall()
        return [_row_to_entry(r) for r in rows]

    def get_overrides(self) -> dict[str, Any]:
        """Return the override layer as a plain {key: value} mapping."""
        return {e.key: e.value for e in self.list_entries()}

    def get_entry(self, key: str) -> ConfigEntry | None:
        with self.engine.connect() as conn:
            row = conn.execute(_config.select().where(_config.c.key == key)).fetchone()
        return _row_to_entry(row) if row is not None else None

    def upsert(self, key: str, value: Any, description: str | None, updated_by: int | None) -> ConfigEntry:
        """Insert or replace the override for key and return the stored entry."""
        values = {
            "value": json.dumps(value),
            "description": description,
            "updated_by": updated_by,
            "updated_at": now_iso(),
        }
        with self.engine.connect() as conn:
            result = conn.execute(_config.update().where(_config.c.key == key).values(**values))
            if result.rowcount == 0:
                conn.execute(_config.insert().values(key=key, **values))
            conn.commit()
        return self.get_entry(key)

    def insert_if_absent(self, key: str, value: Any, description: str | None) -> bool:
        """Store key only if no override exists yet. Returns True if this call wrote it.

        The UNIQUE(key) constraint makes the first concurrent writer win; later
        writers see IntegrityError and leave the stored value alone.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _config.insert().values(
                        key=key,
                        value=json.dumps(value),
                        description=description,
                        updated_by=None,
                        updated_at=now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError:
            return False
        return True

    def delete(self, key: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_config.delete().where(_config.c.key == key))
            conn.commit()
        return result.rowcount > 0

    def delete_all_except(self, keep: set[str]) -> int:
        """Drop every override whose key is not in keep. Returns rows removed."""
        with self.engine.connect() as conn:
            query = _config.delete()
            if keep:
                query = query.where(_config.c.key.not_in(keep))
            result = conn.execute(query)
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


def _row_to_entry(row) -> ConfigEntry:
    return ConfigEntry(
        key=row.key,
        value=json.loads(row.value),
        description=row.description,
        updated_by=row.updated_by,
        updated_at=row.updated_at,
    )
