"""
whitelist/policy.py -- The whitelist decision and its administrative mutations.

is_whitelisted() is the question every enforcement path ultimately asks. It
reads storage on every call; there is no cache because the extension polls on
a seconds-scale interval.

Entry lifecycle:
    absent --add--> active <--update--> inactive
    active / inactive --remove--> absent

Every successful add/update/remove writes exactly one WHITELIST_UPDATED
activity entry naming the operation and the acting admin. Failed operations
write nothing.
"""

from __future__ import annotations

import logging
import re

from sqlalchemy.exc import IntegrityError

from activity.models import ActivityAction, ActivityLog
from activity.store import ActivityStore
from core.errors import Conflict, NotFound, ValidationFailed
from whitelist.models import WhitelistedExtension
from whitelist.store import ExtensionStore

logger = logging.getLogger("guardian.whitelist")

EXTENSION_ID_PATTERN = re.compile(r"^[a-z]{32}$")
NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
VERSION_MAX_LENGTH = 50


def is_valid_extension_id(extension_id: str | None) -> bool:
    return bool(extension_id) and EXTENSION_ID_PATTERN.fullmatch(extension_id) is not None


def is_whitelisted(store: ExtensionStore, extension_id: str) -> bool:
    """True iff a stored entry exists for extension_id with is_active set."""
    return store.is_active(extension_id)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _require_valid_id(extension_id: str) -> None:
    if not is_valid_extension_id(extension_id):
        raise ValidationFailed(
            errors=[{"field": "extensionId", "message": "Extension ID must be a valid Chrome extension ID"}]
        )


def _field_errors(
    name: str | None,
    description: str | None,
    version: str | None,
    name_required: bool,
) -> list[dict]:
    errors: list[dict] = []
    if name is None:
        if name_required:
            errors.append({"field": "name", "message": "Name is required"})
    elif not name:
        errors.append({"field": "name", "message": "Name is required"})
    elif len(name) > NAME_MAX_LENGTH:
        errors.append({"field": "name", "message": f"Name cannot be more than {NAME_MAX_LENGTH} characters"})
    if description is not None and len(description) > DESCRIPTION_MAX_LENGTH:
        errors.append(
            {
                "field": "description",
                "message": f"Description cannot be more than {DESCRIPTION_MAX_LENGTH} characters",
            }
        )
    if version is not None and len(version) > VERSION_MAX_LENGTH:
        errors.append({"field": "version", "message": f"Version cannot be more than {VERSION_MAX_LENGTH} characters"})
    return errors


def _strip(value: str | None) -> str | None:
    return value.strip() if isinstance(value, str) else value


def _audit(
    activity: ActivityStore,
    actor_id: int,
    extension_id: str,
    ip_address: str | None,
    details: dict,
) -> None:
    activity.create_log(
        ActivityLog(
            user_id=str(actor_id),
            action=ActivityAction.WHITELIST_UPDATED.value,
            extension_id=extension_id,
            ip_address=ip_address,
            details=details,
        )
    )


# ---------------------------------------------------------------------------
# Mutations (admin only -- the route layer enforces the role)
# ---------------------------------------------------------------------------


def add_extension(
    store: ExtensionStore,
    activity: ActivityStore,
    *,
    actor_id: int,
    extension_id: str,
    name: str | None,
    description: str | None = None,
    version: str | None = None,
    ip_address: str | None = None,
) -> WhitelistedExtension:
    """Create an active entry. Raises ValidationFailed or Conflict."""
    extension_id = _strip(extension_id) or ""
    name, description, version = _strip(name), _strip(description), _strip(version)
    _require_valid_id(extension_id)
    errors = _field_errors(name, description, version, name_required=True)
    if errors:
        raise ValidationFailed(errors=errors)

    if store.get(extension_id) is not None:
        raise Conflict("Extension already in whitelist")
    try:
        store.create_extension(
            WhitelistedExtension(
                extension_id=extension_id,
                name=name,
                description=description,
                version=version or None,
                added_by=actor_id,
                is_active=True,
            )
        )
    except IntegrityError as exc:
        raise Conflict("Extension already in whitelist") from exc

    _audit(activity, actor_id, extension_id, ip_address, {"operation": "add", "extensionName": name})
    logger.info("Whitelist add %s by user %s", extension_id, actor_id)
    return store.get(extension_id)


def update_extension(
    store: ExtensionStore,
    activity: ActivityStore,
    *,
    actor_id: int,
    extension_id: str,
    name: str | None = None,
    description: str | None = None,
    version: str | None = None,
    is_active: bool | None = None,
    ip_address: str | None = None,
) -> WhitelistedExtension:
    """Apply a partial patch. Fields left as None are not touched.

    Raises ValidationFailed, or NotFound when no entry exists.
    """
    name, description, version = _strip(name), _strip(description), _strip(version)
    _require_valid_id(extension_id)
    errors = _field_errors(name, description, version, name_required=False)
    if errors:
        raise ValidationFailed(errors=errors)

    existing = store.get(extension_id)
    if existing is None:
        raise NotFound("Extension not found")

    updates: dict = {}
    changes: dict = {}
    if name is not None:
        updates["name"] = changes["name"] = name
    if description is not None:
        updates["description"] = changes["description"] = description
    if version:
        updates["version"] = changes["version"] = version
    if is_active is not None:
        updates["is_active"] = changes["isActive"] = is_active
    if not updates:
        raise ValidationFailed("No fields to update")

    store.update_extension(extension_id, **updates)
    updated = store.get(extension_id)
    if updated is None:
        # Removed between the read and the write.
        raise NotFound("Extension not found")

    _audit(
        activity,
        actor_id,
        extension_id,
        ip_address,
        {"operation": "update", "extensionName": updated.name, "changes": changes},
    )
    logger.info("Whitelist update %s by user %s: %s", extension_id, actor_id, sorted(changes))
    return updated


def remove_extension(
    store: ExtensionStore,
    activity: ActivityStore,
    *,
    actor_id: int,
    extension_id: str,
    ip_address: str | None = None,
) -> None:
    """Delete an entry in any state. Raises ValidationFailed or NotFound."""
    _require_valid_id(extension_id)
    existing = store.get(extension_id)
    if existing is None or not store.delete_extension(extension_id):
        raise NotFound("Extension not found")

    _audit(activity, actor_id, extension_id, ip_address, {"operation": "remove", "extensionName": existing.name})
    logger.info("Whitelist remove %s by user %s", extension_id, actor_id)
