"""Error taxonomy shared by services and request handlers.

Every error carries the HTTP status it maps to and a message that is safe to
show to clients.
"""

from typing import Optional


class LedgerError(ValueError):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(LedgerError):
    status_code = 400
    default_message = "Invalid input"


class Unauthorized(LedgerError):
    status_code = 401
    default_message = "Unauthorized"


class NotFound(LedgerError):
    status_code = 404
    default_message = "Not found"


class Conflict(LedgerError):
    # Duplicates are reported to clients as plain bad requests.
    status_code = 400
    default_message = "Conflict"


class ServiceError(LedgerError):
    status_code = 500
    default_message = "Internal server error"


class ServiceUnavailable(LedgerError):
    status_code = 503
    default_message = "Service unavailable"
