import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from app.domain.exceptions import AppError, NotFound, Conflict, InvalidInput, AllocationFailed, PersistenceError, \
    GenerationFailed
from app.core.ctx import REQUEST_ID_CTX

MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger("app.api")

_STATUS_BY_CLASS: dict[type[AppError], int] = {
    NotFound: status.HTTP_404_NOT_FOUND,
    Conflict: status.HTTP_409_CONFLICT,
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    AllocationFailed: status.HTTP_500_INTERNAL_SERVER_ERROR,
    PersistenceError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    GenerationFailed: status.HTTP_500_INTERNAL_SERVER_ERROR,
    AppError: status.HTTP_400_BAD_REQUEST,
}

_TITLES: dict[type[AppError], str] = {
    NotFound: "Not Found",
    Conflict: "Conflict",
    InvalidInput: "Bad Request",
    AllocationFailed: "Invoice Numbering Failed",
    PersistenceError: "Persistence Failed",
    GenerationFailed: "Document Generation Failed",
    AppError: "Application Error",
}


def _status_for(exc: AppError) -> int:
    override = getattr(exc, "http_status", None)
    if override:
        return override
    for cls in type(exc).mro():
        if cls in _STATUS_BY_CLASS:
            return _STATUS_BY_CLASS[cls]
    return status.HTTP_400_BAD_REQUEST


def _title_for(exc: AppError) -> str:
    for cls in type(exc).mro():
        if cls in _TITLES:
            return _TITLES[cls]
    return "Application Error"


def _problem(
    request: Request,
    *,
    http_status: int,
    title: str,
    error: str,
    detail: str | None = None,
    extra: dict | None = None,
) -> JSONResponse:
    body = {
        "status": http_status,
        "title": title,
        "error": error,
        "detail": detail,
        "instance": str(request.url),
    }
    req_id = REQUEST_ID_CTX.get()
    if req_id:
        body["trace_id"] = req_id
    if extra:
        body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=http_status, content=body, media_type=MEDIA_TYPE)


def _validation_context(exc: RequestValidationError | ValidationError) -> list[dict]:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        errors.append({"field": ".".join(loc), "message": err.get("msg")})
    return errors


def register_error_handler(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error_handler(request: Request, exc: AppError):
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.error("%s: %s ctx=%s", exc.reason, exc, exc.ctx)
        extra = {"context": exc.ctx} if exc.ctx else None
        return _problem(
            request,
            http_status=status_code,
            title=_title_for(exc),
            error=exc.reason,
            detail=str(exc) or None,
            extra=extra,
        )

    @app.exception_handler(RequestValidationError)
    @app.exception_handler(ValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError | ValidationError):
        errors = _validation_context(exc)
        return _problem(
            request,
            http_status=status.HTTP_400_BAD_REQUEST,
            title="Bad Request",
            error="validation_error",
            detail="; ".join(f"{e['field']}: {e['message']}" if e["field"] else e["message"] for e in errors),
            extra={"context": {"errors": errors}},
        )

    @app.exception_handler(Exception)
    async def _unhandled_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _problem(
            request,
            http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            title="Internal Server Error",
            error="internal_error",
        )
