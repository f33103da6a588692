"""
MODULE OVERVIEW:
The error taxonomy shared by the engine and the HTTP layer.

WHAT IS HAPPENING HERE:
Each error carries the HTTP status it maps to and a short machine-readable `kind`.
A single exception handler in `server/main.py` turns any `AppError` into
`{"error": kind, "detail": ...}`, so routes never build error responses by hand.
Long-poll timeouts are NOT errors; they are a normal, empty result.
"""


class AppError(Exception):
    status_code: int = 500
    kind: str = "internal_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidInputError(AppError):
    """Blank message, malformed timestamp, out-of-range limit."""
    status_code = 400
    kind = "validation_error"


class NotFoundError(AppError):
    status_code = 404
    kind = "not_found"


class SupersededError(AppError):
    """A newer long-poll request registered under the same client id. Answered as 409 Conflict."""
    status_code = 409
    kind = "superseded"


class StorageError(AppError):
    status_code = 500
    kind = "storage_error"


class PushTransportError(AppError):
    status_code = 500
    kind = "push_transport_error"
