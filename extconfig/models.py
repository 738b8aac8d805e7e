"""
extconfig/models.py -- Persisted override entry for the runtime configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ConfigEntry:
    """One stored override. value is any JSON-serializable object.

    updated_by is None for values written by the system itself (the
    guardian-id pin), otherwise the acting admin's user id.
    """

    key: str
    value: Any
    description: str | None = None
    updated_by: int | None = None
    updated_at: str = ""
