"""
activity/models.py -- Domain dataclass for the append-only activity log.

Records are never updated or deleted -- only inserted. Both the guardian
extension (browser events) and the backend itself (logins, whitelist changes)
write here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ActivityAction(str, Enum):
    EXTENSION_INSTALLED = "EXTENSION_INSTALLED"
    EXTENSION_UNINSTALLED = "EXTENSION_UNINSTALLED"
    EXTENSION_ENABLED = "EXTENSION_ENABLED"
    EXTENSION_DISABLED = "EXTENSION_DISABLED"
    WHITELIST_VIOLATION = "WHITELIST_VIOLATION"
    GUARDIAN_DISABLED = "GUARDIAN_DISABLED"
    GUARDIAN_UNINSTALL_ATTEMPT = "GUARDIAN_UNINSTALL_ATTEMPT"
    COOKIES_CLEARED = "COOKIES_CLEARED"
    BROWSER_CLOSED = "BROWSER_CLOSED"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    WHITELIST_UPDATED = "WHITELIST_UPDATED"


@dataclass
class ActivityLog:
    """One audit entry.

    user_id is a free-form actor identifier: a stringified principal id for
    backend-originated entries, or whatever the extension reports for browser
    events. ip_address is the origin address of the request that wrote it.
    """

    user_id: str
    action: str
    extension_id: str | None = None
    browser_info: dict = field(default_factory=dict)
    details: dict = field(default_factory=dict)
    ip_address: str | None = None
    timestamp: str = ""  # ISO 8601, set by store on insert
    id: int | None = None
