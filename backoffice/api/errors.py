"""
Exception handlers - map domain errors to HTTP responses.

Routes let ``BackofficeError`` subclasses propagate; these handlers turn
them into JSON bodies of the form ``{"detail": ...}``.
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from structlog import get_logger

from backoffice.exceptions import (
    ForbiddenError,
    IdentityProviderError,
    NotFoundError,
    QuotaExceededError,
    TemplateNotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from backoffice.observability.metrics import metrics

logger = get_logger(__name__)


async def unauthenticated_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, UnauthenticatedError)
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": exc.message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def forbidden_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, ForbiddenError)
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"detail": "You do not have permission to access this resource"},
    )


async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, NotFoundError)
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": f"{exc.resource} not found"},
    )


async def quota_exceeded_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, QuotaExceededError)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": exc.message,
            "kind": exc.kind,
            "used": exc.used,
            "limit": exc.limit,
            "remaining": exc.remaining,
            "required": exc.required,
        },
    )


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, ValidationError)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": exc.message},
    )


async def identity_provider_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, IdentityProviderError)
    logger.warning("identity_provider_rejected", code=exc.code, path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": exc.message, "code": exc.code},
    )


async def template_not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, TemplateNotFoundError)
    logger.error(
        "email_template_missing",
        template=exc.template_name,
        path=request.url.path,
    )
    metrics.record_error("TemplateNotFoundError", "render_template")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


async def request_validation_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log detailed validation errors for debugging."""
    assert isinstance(exc, RequestValidationError)

    # ctx may contain non-serializable objects
    sanitized_errors: list[dict[str, Any]] = []
    for error in exc.errors():
        sanitized: dict[str, Any] = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
        }
        if "ctx" in error:
            sanitized["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        sanitized_errors.append(sanitized)

    logger.warning(
        "validation_error",
        path=request.url.path,
        method=request.method,
        errors=sanitized_errors,
    )
    return JSONResponse(
        status_code=422,
        content={"detail": sanitized_errors},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(UnauthenticatedError, unauthenticated_handler)
    app.add_exception_handler(ForbiddenError, forbidden_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(QuotaExceededError, quota_exceeded_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(IdentityProviderError, identity_provider_handler)
    app.add_exception_handler(TemplateNotFoundError, template_not_found_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
