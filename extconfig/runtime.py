"""
extconfig/runtime.py -- Runtime configuration served to the guardian extension.

Two layers, merged on every read:

    DEFAULT_CONFIG   hardcoded here
    overrides        ConfigStore rows (admin edits, the guardian-id pin)

merge_config() is a pure function; callers receive a fresh dict and pass it
on explicitly. Nothing here keeps module-level mutable state.

guardianExtensionId is special: it is pinned by the first extension that reads
the config and cannot be changed, deleted or reset afterwards.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any

from core.errors import ValidationFailed
from extconfig.models import ConfigEntry
from extconfig.store import ConfigStore

logger = logging.getLogger("guardian.config")

GUARDIAN_KEY = "guardianExtensionId"
CLEAR_ITEMS_KEY = "clearItems"

DEFAULT_CONFIG: Mapping[str, Any] = {
    "enableNotifications": True,
    "clearOnDisable": True,
    "clearOnClose": True,
    "clearItems": {
        "cookies": True,
        "localStorage": True,
        "sessionStorage": True,
        "indexedDB": True,
        "cache": True,
        "history": False,
    },
    "requestTimeoutMs": 10000,
    "heartbeatIntervalMs": 5000,
    "checkIntervalMs": 3000,
    "apiRetryAttempts": 3,
    "apiRetryDelayMs": 1000,
    "guardianExtensionId": None,
    "debugMode": False,
}

_DESCRIPTIONS = {
    "enableNotifications": "Enable browser notifications for important events",
    "clearOnDisable": "Clear browser data when extension is disabled",
    "clearOnClose": "Clear browser data when browser is closed",
    "clearItems": "Items to clear when extension is disabled or browser is closed",
    "requestTimeoutMs": "API request timeout in milliseconds",
    "heartbeatIntervalMs": "Heartbeat check interval in milliseconds",
    "checkIntervalMs": "Interval in milliseconds to check for unauthorized extensions",
    "apiRetryAttempts": "Number of API retry attempts on failure",
    "apiRetryDelayMs": "Delay between API retry attempts in milliseconds",
    "guardianExtensionId": "ID of the guardian extension",
    "debugMode": "Enable debug logging",
}


def describe(key: str) -> str:
    return _DESCRIPTIONS.get(key, f"Configuration value for {key}")


def is_known_key(key: str) -> bool:
    return key in DEFAULT_CONFIG


def merge_config(defaults: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Return defaults overlaid with overrides. Neither input is modified."""
    merged = copy.deepcopy(dict(defaults))
    merged.update(copy.deepcopy(dict(overrides)))
    return merged


def effective_config(store: ConfigStore) -> dict[str, Any]:
    return merge_config(DEFAULT_CONFIG, store.get_overrides())


# ---------------------------------------------------------------------------
# Extension read path
# ---------------------------------------------------------------------------


def read_for_extension(store: ConfigStore, extension_id: str) -> dict[str, Any]:
    """Merged config for an authenticated extension; pins the guardian id once.

    If no guardian id is set yet, the requesting extension becomes the
    guardian. The pin is an insert-if-absent, so when two extensions race the
    first write wins and both callers see the winner's id.
    """
    config = effective_config(store)
    if extension_id and not config.get(GUARDIAN_KEY):
        if store.insert_if_absent(GUARDIAN_KEY, extension_id, describe(GUARDIAN_KEY)):
            logger.info("Pinned guardian extension id %s", extension_id)
        config = effective_config(store)
    return config


# ---------------------------------------------------------------------------
# Admin operations
# ---------------------------------------------------------------------------


def apply_updates(
    store: ConfigStore,
    updates: Mapping[str, Any],
    actor_id: int,
) -> tuple[list[ConfigEntry], dict[str, Any]]:
    """Write admin overrides. Returns (written entries, merged config).

    Unknown keys and None values are ignored. clearItems is merged key-by-key
    into its current value. A guardian id can be set while unset but never
    changed. Every key is checked before the first write, so a rejected
    update leaves the stored config untouched.
    """
    current = effective_config(store)
    pending: list[tuple[str, Any]] = []
    for key, value in updates.items():
        if not is_known_key(key) or value is None:
            continue
        if key == GUARDIAN_KEY:
            pinned = current.get(GUARDIAN_KEY)
            if pinned and value != pinned:
                raise ValidationFailed("Guardian Extension ID cannot be changed once set")
            if pinned:
                continue
        if key == CLEAR_ITEMS_KEY and isinstance(value, Mapping):
            value = {**current.get(CLEAR_ITEMS_KEY, {}), **value}
        pending.append((key, value))

    written = [store.upsert(key, value, describe(key), actor_id) for key, value in pending]
    logger.info("Config updated by user %s: %s", actor_id, [e.key for e in written])
    return written, effective_config(store)


def reset(store: ConfigStore, actor_id: int) -> dict[str, Any]:
    """Drop every override except the guardian id and return the merged config."""
    removed = store.delete_all_except({GUARDIAN_KEY})
    logger.info("Config reset by user %s (%d overrides removed)", actor_id, removed)
    return effective_config(store)


def get_value(store: ConfigStore, key: str) -> dict[str, Any]:
    """Describe one key: its stored override, or its default with isDefault=True."""
    if not is_known_key(key):
        raise ValidationFailed("Invalid configuration key")
    entry = store.get_entry(key)
    if entry is None:
        return {"key": key, "value": copy.deepcopy(DEFAULT_CONFIG[key]), "description": describe(key), "isDefault": True}
    return entry_view(entry)


def delete_value(store: ConfigStore, key: str) -> dict[str, Any]:
    """Drop one override so the key falls back to its default."""
    if key == GUARDIAN_KEY:
        raise ValidationFailed("Guardian Extension ID cannot be reset")
    if not is_known_key(key):
        raise ValidationFailed("Invalid configuration key")
    store.delete(key)
    return {"key": key, "value": copy.deepcopy(DEFAULT_CONFIG[key]), "description": describe(key)}


def list_all(store: ConfigStore) -> list[dict[str, Any]]:
    """Every default key (override or default) followed by any extra stored keys."""
    entries = {e.key: e for e in store.list_entries()}
    result: list[dict[str, Any]] = []
    for key, default in DEFAULT_CONFIG.items():
        entry = entries.pop(key, None)
        if entry is not None:
            result.append(entry_view(entry))
        else:
            result.append({"key": key, "value": copy.deepcopy(default), "description": describe(key), "isDefault": True})
    result.extend(entry_view(e) for e in entries.values())
    return result


def entry_view(entry: ConfigEntry) -> dict[str, Any]:
    return {
        "key": entry.key,
        "value": entry.value,
        "description": entry.description or describe(entry.key),
        "updatedBy": entry.updated_by,
        "updatedAt": entry.updated_at,
        "isDefault": False,
    }
