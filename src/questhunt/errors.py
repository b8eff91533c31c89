"""Domain exceptions.

Services raise these; the global error handler renders them as
``{"error": <code>, "detail": <message>}`` with the class status code.
"""

from __future__ import annotations


class QuestHuntError(Exception):
    """Base class for errors with a client-facing status code."""

    status_code: int = 500
    code: str = "error"

    def __init__(self, message: str, **context: object) -> None:
        self.message = message
        self.context = context
        super().__init__(message)


class Unauthenticated(QuestHuntError):
    status_code = 401
    code = "unauthenticated"


class Forbidden(QuestHuntError):
    status_code = 403
    code = "forbidden"


class InvalidInput(QuestHuntError):
    status_code = 400
    code = "invalid_input"


class NotFound(QuestHuntError):
    status_code = 404
    code = "not_found"


class Conflict(QuestHuntError):
    """A one-way latch or idempotence guard refused the write."""

    status_code = 409
    code = "conflict"


class InvalidState(QuestHuntError):
    status_code = 409
    code = "invalid_state"


class ValidationError(QuestHuntError):
    """The database rejected a write (constraint, type, etc.)."""

    status_code = 400
    code = "validation_error"


class UpstreamError(QuestHuntError):
    """Third-party API failed: non-2xx maps to 500, timeout to 504."""

    code = "upstream_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        upstream_status: int | None = None,
    ) -> None:
        super().__init__(message, upstream_status=upstream_status)
        self.status_code = status_code
        self.upstream_status = upstream_status
