"""Engine error taxonomy, mapped to HTTP status codes by the app."""


class EngineError(Exception):
    """Base class for every error the engine surfaces to callers."""

    status_code = 500
    retryable = False

    def __init__(self, detail: str, field: str | None = None):
        super().__init__(detail)
        self.detail = detail
        self.field = field

    def to_dict(self) -> dict:
        body = {"detail": self.detail, "type": type(self).__name__}
        if self.field:
            body["field"] = self.field
        if self.retryable:
            body["retryable"] = True
        return body


class ValidationError(EngineError):
    """Missing or malformed input, rejected before any state change."""

    status_code = 400


class NotFound(EngineError):
    status_code = 404


class Forbidden(EngineError):
    """Permission denied, including completing a locked task."""

    status_code = 403


class ConcurrencyConflict(EngineError):
    """Save retries exhausted; the caller may resubmit."""

    status_code = 409
    retryable = True


class DependencyNotFound(NotFound, ValidationError):
    """``dependsOn`` names no task on the card. Reported as 404."""

    status_code = 404
