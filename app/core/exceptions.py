"""Custom exceptions and FastAPI exception handlers.

Every error response is a flat JSON object with a stable shape per status
code: ``{"error": <message>, ...details}``. Webhook callers branch on the
status code alone.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Exception Classes
# =============================================================================


class LedgerError(Exception):
    """Base exception for VendoLedger application errors.

    All application-specific exceptions should inherit from this class.
    ``details`` are merged into the response body next to ``error``.
    """

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialize application error.

        Args:
            message: Human-readable error message, returned as ``error``.
            code: Machine-readable error code (logged, not returned).
            status_code: HTTP status code.
            details: Extra response fields.
            headers: Extra response headers.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.headers = headers

    def to_body(self) -> dict[str, Any]:
        """Render the JSON response body."""
        return {"error": self.message, **self.details}


class MethodNotAllowedError(LedgerError):
    """Request used a method other than POST."""

    def __init__(self, allowed: str = "POST") -> None:
        super().__init__(
            message="Method not allowed",
            code="METHOD_NOT_ALLOWED",
            status_code=405,
            headers={"Allow": allowed},
        )


class UnauthorizedError(LedgerError):
    """Webhook secret header missing or wrong."""

    def __init__(self) -> None:
        super().__init__(message="Unauthorized", code="UNAUTHORIZED", status_code=401)


class InvalidPayloadError(LedgerError):
    """Request body is not valid JSON."""

    def __init__(self) -> None:
        super().__init__(message="Invalid JSON body", code="INVALID_PAYLOAD", status_code=400)


class MissingFieldsError(LedgerError):
    """One of vendo, amount, txn is missing."""

    def __init__(self) -> None:
        super().__init__(
            message="Missing required fields: vendo, amount, txn",
            code="MISSING_FIELDS",
            status_code=400,
        )


class InvalidFieldsError(LedgerError):
    """Fields are present but hold values of the wrong shape."""

    def __init__(self, fields: list[dict[str, str]]) -> None:
        super().__init__(
            message="Invalid field values",
            code="INVALID_FIELDS",
            status_code=400,
            details={"fields": fields},
        )


class UnknownDeviceError(LedgerError):
    """Device identifier absent, unregistered, or not linked to a tenant."""

    def __init__(self) -> None:
        super().__init__(
            message="Unknown device or missing tenant association",
            code="UNKNOWN_DEVICE",
            status_code=400,
        )


class AmbiguousDeviceError(LedgerError):
    """Device identifier matches more than one registry entry by name."""

    def __init__(self, device: str) -> None:
        super().__init__(
            message="Ambiguous device identifier",
            code="AMBIGUOUS_DEVICE",
            status_code=409,
            details={"device": device},
        )


class DeviceLookupFailedError(LedgerError):
    """Device registry query could not be executed."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            message="Device lookup failed",
            code="DEVICE_LOOKUP_FAILED",
            status_code=502,
            details={"detail": detail},
        )


class InsertFailedError(LedgerError):
    """Sales insert failed for a reason other than a duplicate txn."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            message="DB insert failed",
            code="INSERT_FAILED",
            status_code=502,
            details={"detail": detail},
        )


class InternalServerError(LedgerError):
    """Unexpected fault. The cause is logged, never returned."""

    def __init__(self) -> None:
        super().__init__(message="Internal server error")


# =============================================================================
# Exception Handlers
# =============================================================================


async def ledger_exception_handler(
    request: Request,
    exc: LedgerError,
) -> JSONResponse:
    """Handle LedgerError exceptions.

    Args:
        request: FastAPI request object.
        exc: The raised exception.

    Returns:
        JSON response with the error body and status.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "app.error_handled",
        error=exc.message,
        error_type=type(exc).__name__,
        error_code=exc.code,
        status_code=exc.status_code,
        path=str(request.url.path),
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_body(),
        headers=exc.headers,
    )


async def routing_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> Response:
    """Handle HTTP errors raised by the router itself.

    A 405 from routing (a method no route registers, such as TRACE) gets the
    same body as the webhook's own method check. Other statuses keep
    FastAPI's default rendering.

    Args:
        request: FastAPI request object.
        exc: The raised HTTP exception.

    Returns:
        JSON response for the routing error.
    """
    if exc.status_code != 405:
        return await http_exception_handler(request, exc)

    allowed = (exc.headers or {}).get("Allow", "POST")
    # Webhook routes register every method but only serve POST
    if "POST" in allowed.split(", "):
        allowed = "POST"
    return await ledger_exception_handler(request, MethodNotAllowedError(allowed=allowed))


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected exceptions.

    Args:
        request: FastAPI request object.
        exc: The raised exception.

    Returns:
        500 JSON response without internal detail.
    """
    logger.error(
        "app.unhandled_error",
        error=str(exc),
        error_type=type(exc).__name__,
        path=str(request.url.path),
        exc_info=True,
    )

    return JSONResponse(status_code=500, content=InternalServerError().to_body())


# =============================================================================
# Handler Registration
# =============================================================================


def register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.add_exception_handler(LedgerError, ledger_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        StarletteHTTPException,
        routing_exception_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, unhandled_exception_handler)
