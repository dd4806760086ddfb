"""Domain exceptions and the JSON error envelope.

Services raise these; the handlers registered in main.py render every error
as ``{"error": <message>, "code": <CODE>}`` so clients can branch on ``code``
without sniffing the payload.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ValidationError(DomainError):
    status_code = 400
    default_code = "VALIDATION_ERROR"


class AuthenticationError(DomainError):
    status_code = 401
    default_code = "UNAUTHENTICATED"


class PaymentRequiredError(DomainError):
    status_code = 402
    default_code = "PAYMENT_REQUIRED"


class PermissionDeniedError(DomainError):
    status_code = 403
    default_code = "FORBIDDEN"


class NotFoundError(DomainError):
    status_code = 404
    default_code = "NOT_FOUND"


class IntegrationError(DomainError):
    """Downstream provider failure (payment, storage, email)."""

    status_code = 502
    default_code = "INTEGRATION_ERROR"


# Codes used for plain HTTPException raised by routers and dependencies
_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHENTICATED",
    402: "PAYMENT_REQUIRED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    429: "RATE_LIMITED",
    501: "NOT_CONFIGURED",
}


def error_body(message: str, code: str) -> dict:
    return {"error": message, "code": code}


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        # Detail stays server-side
        logger.error("Domain error on %s %s: %s", request.method, request.url.path, exc.message)
        message = (
            "Upstream service unavailable"
            if isinstance(exc, IntegrationError)
            else "Internal server error"
        )
        return JSONResponse(status_code=exc.status_code, content=error_body(message, exc.code))
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.code))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    code = _STATUS_CODES.get(exc.status_code, "ERROR")
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, code),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", []) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content=error_body(message, "VALIDATION_ERROR"))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", "INTERNAL_ERROR"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
