from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for errors raised by the service layer.

    Each subclass carries the HTTP status it maps to; ``code`` and ``message``
    are what clients see, ``details`` is an optional structured payload.
    """

    status_code: int = 400
    default_code: str = "bad_request"
    default_message: str = "Request failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ServiceError):
    default_code = "validation_error"
    default_message = "Validation failed"


class MissingField(ValidationError):
    default_code = "missing_field"
    default_message = "Missing fields"


class InvalidIdentifier(ValidationError):
    default_code = "invalid_identifier"
    default_message = "Invalid ID"


class InvalidTransition(ServiceError):
    default_code = "invalid_transition"
    default_message = "Transition not allowed"


class InvalidCredentials(ServiceError):
    default_code = "invalid_credentials"
    default_message = "Invalid credentials"


class Conflict(ServiceError):
    default_code = "conflict"
    default_message = "Resource already exists"


class DuplicateEmail(Conflict):
    default_code = "duplicate_email"
    default_message = "User already exists"


class Unauthenticated(ServiceError):
    status_code = 401
    default_code = "unauthorized"
    default_message = "Unauthorized access"


class Forbidden(ServiceError):
    status_code = 403
    default_code = "forbidden"
    default_message = "Forbidden access"


class AccountSuspended(Forbidden):
    default_code = "account_suspended"
    default_message = "Your account is suspended"


class NotFound(ServiceError):
    status_code = 404
    default_code = "not_found"
    default_message = "Not found"


class UpstreamFailure(ServiceError):
    status_code = 502
    default_code = "upstream_failure"
    default_message = "Upstream service failed"


class UpstreamTimeout(UpstreamFailure):
    status_code = 504
    default_code = "upstream_timeout"
    default_message = "Upstream service did not respond"


def _default_code(status_code: int) -> str:
    mapping = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        409: "conflict",
        422: "unprocessable_entity",
        429: "rate_limited",
    }
    return mapping.get(status_code, "http_error")


def _default_message(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Request failed"


def _normalize_details(details: Any) -> dict:
    if details is None:
        return {}
    if isinstance(details, dict):
        return details
    if isinstance(details, list):
        return {"errors": details}
    if isinstance(details, str):
        return {"detail": details}
    return {"detail": str(details)}


def _build_response(
    status_code: int,
    code: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    payload = {
        "code": code,
        "message": message,
        "data": None,
        "details": _normalize_details(details),
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def _parse_http_exception_detail(detail: Any, status_code: int) -> tuple[str, str, dict]:
    code = _default_code(status_code)
    message = _default_message(status_code)

    if isinstance(detail, dict):
        code = detail.get("code") or code
        message = detail.get("message") or detail.get("detail") or message
        details = _normalize_details(detail.get("details"))
        return code, message, details

    if isinstance(detail, list):
        return code, message, {"errors": detail}

    if isinstance(detail, str):
        return code, detail, {"detail": detail}

    return code, message, {"detail": str(detail)}


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if isinstance(exc, UpstreamFailure):
        # Upstream text stays in the logs; clients only get the taxonomy code.
        logger.error(
            "Upstream failure on %s %s: %s details=%s",
            request.method,
            request.url.path,
            exc.message,
            exc.details,
        )
        return _build_response(exc.status_code, exc.code, exc.default_message)
    return _build_response(exc.status_code, exc.code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code, message, details = _parse_http_exception_detail(exc.detail, exc.status_code)
    return _build_response(exc.status_code, code, message, details)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = "Validation failed"
    if errors:
        first = errors[0] or {}
        loc = first.get("loc") or []
        msg = first.get("msg") or "Validation failed"
        # Drop the request section (body/query/path) from the location
        loc_parts = [str(part) for part in loc if part not in {"body", "query", "path"}]
        if loc_parts:
            message = f"{'.'.join(loc_parts)}: {msg}"
        else:
            message = str(msg)
    return _build_response(
        status_code=422,
        code="validation_error",
        message=message,
        details={"errors": errors},
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "Database error on %s %s",
        request.method,
        request.url.path,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    if isinstance(exc, (OperationalError, PoolTimeoutError)):
        return _build_response(
            UpstreamTimeout.status_code,
            UpstreamTimeout.default_code,
            UpstreamTimeout.default_message,
        )
    return _build_response(
        UpstreamFailure.status_code,
        UpstreamFailure.default_code,
        UpstreamFailure.default_message,
    )


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    details = getattr(exc, "detail", None)
    response = _build_response(
        status_code=429,
        code="rate_limited",
        message=_default_message(429),
        details=details,
    )
    headers = getattr(exc, "headers", None)
    if isinstance(headers, dict):
        response.headers.update(headers)
    return response


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s",
        request.method,
        request.url.path,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return _build_response(
        status_code=500,
        code="internal_server_error",
        message="Internal server error",
        details={},
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
