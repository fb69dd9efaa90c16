"""
Error kinds raised by the services.

Each kind maps to one HTTP status; the handlers in ``main`` render all of them
with the same ``{"success": false, "message": ...}`` envelope.
"""

from typing import Optional


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class Unauthenticated(AppError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(AppError):
    status_code = 403
    default_message = "Access denied"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class Conflict(AppError):
    # uniqueness and dependency violations answer 400, like the web client expects
    status_code = 400
    default_message = "Conflict"


class InternalError(AppError):
    status_code = 500
