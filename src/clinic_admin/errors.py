"""Error taxonomy and the handlers that turn errors into JSON responses.

Every failure leaves the API as ``{"error": <message>, "details": <optional>}``
plus optional echo fields (for example ``current_balance`` on a balance
conflict). The status code is carried by the exception class.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)


class ClinicError(Exception):
    """Base class for errors that map onto a fixed HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_error: str = "Internal server error"

    def __init__(self, error: Optional[str] = None, *, details: Optional[str] = None, **extra: Any) -> None:
        self.error = error or self.default_error
        self.details = details
        self.extra = extra
        super().__init__(self.error if details is None else f"{self.error}: {details}")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.error}
        if self.details is not None:
            payload["details"] = self.details
        payload.update(self.extra)
        return payload


class ValidationError(ClinicError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_error = "Validation failed"


class AuthenticationError(ClinicError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_error = "Authentication required"


class AuthorizationError(ClinicError):
    status_code = status.HTTP_403_FORBIDDEN
    default_error = "Forbidden"


class NotFoundError(ClinicError):
    status_code = status.HTTP_404_NOT_FOUND
    default_error = "Not found"


class ConflictError(ClinicError):
    status_code = status.HTTP_409_CONFLICT
    default_error = "Conflict"


class StoreError(ClinicError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_error = "Database error"


def _format_validation_errors(exc: RequestValidationError) -> str:
    messages = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "header")]
        field = ".".join(loc) or "body"
        if err.get("type") == "missing":
            messages.append(f"{field} is required")
        else:
            messages.append(f"{field}: {err.get('msg')}")
    return ", ".join(messages)


async def clinic_error_handler(request: Request, exc: ClinicError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    if any(err.get("type") == "json_invalid" for err in exc.errors()):
        # The body failed to decode before authentication ran; credentials win.
        from src.clinic_admin.security import check_route_credentials

        try:
            check_route_credentials(request)
        except ClinicError as auth_exc:
            return await clinic_error_handler(request, auth_exc)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation failed", "details": _format_validation_errors(exc)},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Store failure during %s %s", request.method, request.url.path)
    orig = getattr(exc, "orig", None)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Database error", "details": str(orig or exc)},
    )


class UnhandledErrorMiddleware:
    """Convert any exception that escaped the route handlers into a JSON 500.

    Sits inside the CORS middleware so the error response still carries the
    CORS header set. Exceptions raised after the response has started (for
    example from background work) are re-raised untouched.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                raise
            logger.exception("Unhandled error during %s %s", scope.get("method"), scope.get("path"))
            response = JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Internal server error", "details": str(exc)},
            )
            await response(scope, receive, send)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ClinicError, clinic_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, store_error_handler)  # type: ignore[arg-type]
