from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from petichat.apps.api.response import error_response
from petichat.core.errors import (
    ConflictError,
    JobError,
    NotFoundError,
    PetichatError,
    ProviderConfigError,
    ProviderError,
    ServiceBusyError,
    StaleActionError,
    UnauthorizedError,
    ValidationError,
)
from petichat.persistence.guards import TenantPredicateError


logger = logging.getLogger(__name__)

# Ordered most-specific first; the first isinstance match wins.
_ERROR_MAP: list[tuple[type[PetichatError], int, str]] = [
    (ValidationError, 422, "VALIDATION_ERROR"),
    (NotFoundError, 404, "NOT_FOUND"),
    (UnauthorizedError, 401, "UNAUTHORIZED"),
    (ConflictError, 409, "CONFLICT"),
    (ProviderConfigError, 502, "PROVIDER_CONFIG_ERROR"),
    (ProviderError, 502, "PROVIDER_ERROR"),
    (StaleActionError, 410, "STALE_ACTION"),
    (ServiceBusyError, 503, "SERVICE_BUSY"),
    (JobError, 500, "JOB_ERROR"),
]

_DEFAULT_ERROR_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    503: "SERVICE_BUSY",
}

_DEFAULT_MESSAGES: dict[int, str] = {
    401: "Autenticação necessária",
    404: "Recurso não encontrado",
    422: "Dados inválidos",
    500: "Ocorreu um erro inesperado",
}


def classify(exc: PetichatError) -> tuple[int, str]:
    for error_cls, status_code, code in _ERROR_MAP:
        if isinstance(exc, error_cls):
            return status_code, code
    return 500, "INTERNAL_ERROR"


async def petichat_exception_handler(request: Request, exc: PetichatError) -> JSONResponse:
    status_code, code = classify(exc)
    if isinstance(exc, ProviderError):
        logger.warning("provider_error path=%s code=%s message=%s", request.url.path, code, exc.message)
    elif status_code >= 500 and not isinstance(exc, ServiceBusyError):
        logger.error("request_failed path=%s code=%s", request.url.path, code, exc_info=exc)
    headers = {"Retry-After": "1"} if isinstance(exc, ServiceBusyError) else None
    if isinstance(exc, UnauthorizedError):
        headers = {"WWW-Authenticate": "Bearer"}
    message = exc.message or _DEFAULT_MESSAGES.get(status_code, "Ocorreu um erro inesperado")
    payload = error_response(request=request, code=code, message=message, details=exc.details)
    return JSONResponse(content=payload, status_code=status_code, headers=headers)


def _split_detail(detail: Any, status_code: int) -> tuple[str, str, Any]:
    # Extract code/message/details from FastAPI HTTPException detail payloads.
    code = _DEFAULT_ERROR_CODES.get(status_code, "UNKNOWN_ERROR")
    message = _DEFAULT_MESSAGES.get(status_code, "Falha na requisição")
    if isinstance(detail, dict):
        extra = {k: v for k, v in detail.items() if k not in {"code", "message"}}
        return str(detail.get("code") or code), str(detail.get("message") or message), extra or None
    if isinstance(detail, str) and status_code not in _DEFAULT_MESSAGES:
        return code, detail, None
    return code, message, None


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Normalize HTTPExceptions (FastAPI and Starlette) into the shared error envelope.
    code, message, details = _split_detail(exc.detail, exc.status_code)
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=exc.status_code, headers=getattr(exc, "headers", None))


def _field_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    fields: list[dict[str, str]] = []
    for error in exc.errors():
        # Drop the leading location segment ("body", "query", "path").
        location = [str(part) for part in error.get("loc", ())][1:]
        fields.append({"field": ".".join(location) or "body", "message": str(error.get("msg", ""))})
    return fields


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    payload = error_response(
        request=request,
        code="VALIDATION_ERROR",
        message="Dados inválidos",
        details=_field_errors(exc),
    )
    return JSONResponse(content=payload, status_code=422)


async def tenant_predicate_exception_handler(request: Request, exc: TenantPredicateError) -> JSONResponse:
    # A query built without a tenant is a programming error, never a caller error.
    logger.error("tenant_predicate_missing path=%s", request.url.path, exc_info=exc)
    payload = error_response(request=request, code="INTERNAL_ERROR", message="Ocorreu um erro inesperado")
    return JSONResponse(content=payload, status_code=500)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Avoid leaking stack traces; return a stable internal error envelope.
    logger.error("unhandled_exception path=%s", request.url.path, exc_info=exc)
    payload = error_response(request=request, code="INTERNAL_ERROR", message="Ocorreu um erro inesperado")
    return JSONResponse(content=payload, status_code=500)
