"""
core/errors.py -- Error taxonomy shared by every layer.

Each AppError carries the HTTP status and a stable machine code. Dependencies,
policy functions and route handlers raise these; api/main.py owns the single
exception handler that renders them into the {"success": false, ...} envelope.

Conflict maps to 400, not 409: the guardian extension and admin UI already
treat duplicate email / duplicate extension id as a plain bad request.

Layer rule: core/ is the kernel. No imports from other project packages.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for all expected, terminal per-request failures."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Server Error"

    def __init__(self, message: str | None = None, errors: list[dict] | None = None) -> None:
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class Unauthenticated(AppError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Not authorized to access this route"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class ValidationFailed(AppError):
    """Malformed request shape. errors holds [{"field", "message"}] entries."""

    status_code = 400
    code = "validation_error"
    default_message = "Validation failed"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class Conflict(AppError):
    status_code = 400
    code = "conflict"
    default_message = "Resource already exists"


class InternalFailure(AppError):
    status_code = 500
    code = "internal_error"
    default_message = "Server Error"
