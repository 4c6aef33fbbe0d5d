"""Domain error taxonomy.

Each error carries the HTTP status and a stable machine-readable code so the
global exception handler can render it without the routers re-mapping it.
Duplicate awards are not errors: they return ``already_granted=True``.
"""

from __future__ import annotations


class CurioError(Exception):
    """Base class for errors raised by the award and ranking engine."""

    status_code: int = 400
    code: str = "curio_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidEventKind(CurioError):
    """The event kind is not one of the defined award kinds."""

    code = "invalid_event_kind"


class MissingContext(CurioError):
    """Scoring input is incomplete or malformed for the event kind."""

    code = "missing_context"


class Forbidden(CurioError):
    """The caller may not read this scope (e.g. circle of which they are not a member)."""

    status_code = 403
    code = "forbidden"


class NotFound(CurioError):
    """Unknown account or circle."""

    status_code = 404
    code = "not_found"


class Unavailable(CurioError):
    """The underlying store failed transiently; retry with the same idempotency key."""

    status_code = 503
    code = "unavailable"
