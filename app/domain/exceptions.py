from app.core.utils.serialization import normalize_ctx


class AppError(Exception):
    """Base for every failure that crosses the API boundary.

    ``reason`` is a short machine-readable code returned to callers as ``error``;
    the message is human-readable detail.
    """
    default_reason = "application_error"
    # Set by a route when the default status mapping does not apply
    http_status: int | None = None

    def __init__(self, message: str = "", *, reason: str | None = None, ctx: dict | None = None) -> None:
        super().__init__(message or self.__class__.__name__)
        self.reason = reason or self.default_reason
        self.ctx = normalize_ctx(ctx or {})


class InvalidInput(AppError):
    default_reason = "validation_error"
class NotFound(AppError):
    default_reason = "not_found"
class Conflict(AppError):
    default_reason = "conflict"
class AllocationFailed(AppError):
    default_reason = "numbering_failed"
class PersistenceError(AppError):
    default_reason = "persistence_failed"
class GenerationFailed(AppError):
    default_reason = "generation_failed"
