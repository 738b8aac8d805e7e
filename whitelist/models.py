"""
whitelist/models.py -- Domain dataclass for whitelist entries.

Pure data container. Rules (id shape, field limits, audit) live in
whitelist/policy.py; persistence lives in whitelist/store.py.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class WhitelistedExtension:
    """A browser extension the organization permits.

    extension_id is the 32-letter Chrome extension id and the natural key.
    added_by is the id of the admin who created the entry. An entry only
    counts as whitelisted while is_active is True.
    """

    extension_id: str
    name: str
    added_by: int
    description: str | None = None
    version: str | None = None
    is_active: bool = True
    added_date: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, refreshed by store on every update
    id: int | None = None
