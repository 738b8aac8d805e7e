"""
auth/extension_keys.py -- Credential check for the guardian browser extension.

The extension self-issues its key as "<extensionId>-<anything>" and sends it
in X-API-Key alongside X-Extension-ID. The server only checks that prefix.

SECURITY WEAKNESS: this is a development-grade placeholder, not a secret
comparison. Anyone who knows (or guesses) an extension id can present
"<id>-x" and receive full extension trust. The deployed extension client
depends on the rule, so it is kept as-is rather than silently strengthened.
Replacing it means shipping a new extension build together with a real
per-installation secret.

Layer rule: stdlib only.
"""

from __future__ import annotations


def verify_extension_key(extension_id: str, presented_key: str) -> bool:
    """Return True iff presented_key starts with extension_id + "-"."""
    return presented_key.startswith(f"{extension_id}-")
