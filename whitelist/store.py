"""
whitelist/store.py -- SQLAlchemy Core persistence for whitelist entries.

Pattern: Repository + Data Mapper. ExtensionStore is the repository;
_row_to_extension is the mapper.

UNIQUE(extension_id) is enforced by the schema so a concurrent duplicate add
surfaces as IntegrityError even if both requests passed the pre-check.
"""

from __future__ import annotations

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, select
from sqlalchemy.engine import Engine

from core.config import get_settings, now_iso
from core.db import make_engine
from whitelist.models import WhitelistedExtension

_metadata = MetaData()

_extensions = Table(
    "extensions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("extension_id", String(32), nullable=False, unique=True),
    Column("name", String(100), nullable=False),
    Column("description", Text),
    Column("version", String(50)),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("added_by", Integer, nullable=False),
    Column("added_date", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_extensions_id_active", "extension_id", "is_active"),
)


class ExtensionStore:
    """Repository for WhitelistedExtension entities."""

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    def create_extension(self, ext: WhitelistedExtension) -> int:
        """Insert an entry and return its row id.

        Raises sqlalchemy.exc.IntegrityError if extension_id already exists.
        """
        now = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _extensions.insert().values(
                    extension_id=ext.extension_id,
                    name=ext.name,
                    description=ext.description,
                    version=ext.version,
                    is_active=1 if ext.is_active else 0,
                    added_by=ext.added_by,
                    added_date=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get(self, extension_id: str) -> WhitelistedExtension | None:
        with self.engine.connect() as conn:
            row = conn.execute(_extensions.select().where(_extensions.c.extension_id == extension_id)).fetchone()
        return _row_to_extension(row) if row is not None else None

    def is_active(self, extension_id: str) -> bool:
        """True iff an entry exists for extension_id and its active flag is set."""
        query = select(_extensions.c.id).where(
            (_extensions.c.extension_id == extension_id) & (_extensions.c.is_active == 1)
        )
        with self.engine.connect() as conn:
            return conn.execute(query).first() is not None

    def list_extensions(self, is_active: bool | None = None) -> list[WhitelistedExtension]:
        """Return entries newest first, optionally filtered by active flag."""
        query = _extensions.select()
        if is_active is not None:
            query = query.where(_extensions.c.is_active == (1 if is_active else 0))
        query = query.order_by(_extensions.c.added_date.desc(), _extensions.c.id.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_extension(r) for r in rows]

    def update_extension(self, extension_id: str, **fields) -> bool:
        """Patch name/description/version/is_active and refresh updated_at.

        is_active must be passed as bool; it is stored as 0/1.
        Returns True if a row was updated.
        """
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        fields["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _extensions.update().where(_extensions.c.extension_id == extension_id).values(**fields)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_extension(self, extension_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_extensions.delete().where(_extensions.c.extension_id == extension_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_extension(row) -> WhitelistedExtension:
    return WhitelistedExtension(
        id=row.id,
        extension_id=row.extension_id,
        name=row.name,
        description=row.description,
        version=row.version,
        is_active=bool(row.is_active),
        added_by=row.added_by,
        added_date=row.added_date,
        updated_at=row.updated_at,
    )
