"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; these dataclasses own domain shape.

Layer rule: no imports from api/, whitelist/, activity/, or extconfig/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLES = ("user", "admin")


@dataclass
class User:
    """A human principal.

    email is the login identifier and is unique across the store.
    hashed_password is a bcrypt hash and must never leave the process: API
    response models copy named fields only, so it cannot be serialized by
    accident.
    """

    email: str
    name: str
    role: str = "user"  # "user" | "admin"
    id: int | None = None
    hashed_password: str | None = None
    created_at: str | None = None
    last_login: str | None = None
