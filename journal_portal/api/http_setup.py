"""HTTP middleware and exception handler wiring for the portal API."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from journal_portal.api.contracts import ApiErrorResponse
from journal_portal.api.errors import ApiErrorCode, field_error, to_error_payload
from journal_portal.auth.repository import CredentialStoreUnavailable
from journal_portal.core.config import AppConfig
from journal_portal.core.logging import correlation_scope

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}


def _request_extra(request: Request, status_code: int) -> dict[str, Any]:
    return {
        "path": request.url.path,
        "method": request.method,
        "status_code": status_code,
    }


def _validation_field_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    errors: list[dict[str, str]] = []
    for item in exc.errors():
        location = [str(part) for part in item.get("loc", ()) if part != "body"]
        errors.append(field_error(".".join(location) or "body", str(item.get("msg", ""))))
    return errors


def register_http_middleware(app: FastAPI, *, config: AppConfig, logger: Any) -> None:
    """Attach request size limit, security headers and request logging."""

    @app.middleware("http")
    async def request_size_limit_middleware(request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                parsed_length = int(content_length)
            except ValueError:
                parsed_length = 0
            if parsed_length > config.security.request_max_bytes:
                return JSONResponse(
                    status_code=413,
                    content=ApiErrorResponse(
                        error_code=ApiErrorCode.REQUEST_TOO_LARGE,
                        message=(
                            "Request size exceeds configured limit "
                            f"({config.security.request_max_bytes} bytes)."
                        ),
                    ).model_dump(),
                )
        return await call_next(request)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        correlation_id = (
            request.headers.get("x-request-id")
            or request.headers.get("x-correlation-id")
            or uuid.uuid4().hex
        )
        with correlation_scope(correlation_id):
            response = await call_next(request)
            response.headers["X-Request-ID"] = correlation_id
            for name, value in SECURITY_HEADERS.items():
                response.headers[name] = value
            logger.info(
                "request_completed",
                extra=_request_extra(request, response.status_code),
            )
            return response


def register_exception_handlers(app: FastAPI, *, logger: Any) -> None:
    """Attach handlers that render every failure as an ``ApiErrorResponse``."""

    @app.exception_handler(HTTPException)
    async def handle_http_exception(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        payload = to_error_payload(exc.detail, exc.status_code)
        logger.warning("http_exception", extra=_request_extra(request, exc.status_code))
        return JSONResponse(
            status_code=exc.status_code,
            content=ApiErrorResponse(**payload).model_dump(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_exception(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        logger.warning("validation_exception", extra=_request_extra(request, 422))
        return JSONResponse(
            status_code=422,
            content=ApiErrorResponse(
                error_code=ApiErrorCode.VALIDATION_ERROR,
                message="Request validation failed",
                errors=_validation_field_errors(exc),
            ).model_dump(),
        )

    @app.exception_handler(CredentialStoreUnavailable)
    async def handle_store_unavailable(
        request: Request,
        exc: CredentialStoreUnavailable,
    ) -> JSONResponse:
        logger.error("credential_store_unavailable", extra=_request_extra(request, 503))
        return JSONResponse(
            status_code=503,
            content=ApiErrorResponse(
                error_code=ApiErrorCode.SERVICE_UNAVAILABLE,
                message="Service temporarily unavailable",
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.exception("unexpected_exception", extra=_request_extra(request, 500))
        return JSONResponse(
            status_code=500,
            content=ApiErrorResponse(
                error_code=ApiErrorCode.INTERNAL_SERVER_ERROR,
                message="Internal server error",
            ).model_dump(),
        )
