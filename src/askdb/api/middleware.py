"""
HTTP middleware and exception handlers for the AskDB API.

Middleware (outermost first): trace id -> request logging -> security headers.

Every error leaves the service in the same JSON shape (ErrorResponse):
    {"error": "<error_code lowercased>", "message": ..., "details": {...},
     "trace_id": ..., "timestamp": ...}

Handlers:
- AskDBException: status and code taken from the exception
- RequestValidationError: 422 with one entry per offending field
- Starlette HTTPException: 404/405 and friends from routing
- Exception: 500 with a generic message, details only in the logs

Note that a generated plan failing at execution never reaches these handlers;
it is returned as a normal QueryResponse with result.success = false.
"""

from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..utils.logging import get_module_logger
from ..utils.tracing import TRACE_ID_HEADER, generate_trace_id, set_trace_id, reset_trace_id, current_trace_id
from ..domain.responses import ErrorResponse
from ..domain.errors import AskDBException

logger = get_module_logger()

PROCESS_TIME_HEADER = "X-Process-Time"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


# =============================================================================
# Middleware
# =============================================================================


async def trace_id_middleware(request: Request, call_next: Callable) -> Response:
    """
    Bind a trace id to the request context and echo it in X-Trace-ID.

    A caller-supplied X-Trace-ID is reused so a client can correlate its own
    logs with ours; otherwise a new UUID is generated.
    """
    trace_id = request.headers.get(TRACE_ID_HEADER) or generate_trace_id()
    token = set_trace_id(trace_id)

    try:
        response = await call_next(request)
    finally:
        reset_trace_id(token)

    response.headers[TRACE_ID_HEADER] = trace_id
    return response


async def logging_middleware(request: Request, call_next: Callable) -> Response:
    """Log each request once on entry and once on exit, with its duration."""
    start_time = datetime.now(timezone.utc)
    trace_id = current_trace_id()

    logger.info(
        "Request received",
        method=request.method,
        path=request.url.path,
        client_ip=request.client.host if request.client else None,
        trace_id=trace_id
    )

    response = await call_next(request)

    duration_ms = round((datetime.now(timezone.utc) - start_time).total_seconds() * 1000, 2)
    response.headers[PROCESS_TIME_HEADER] = str(duration_ms)

    log_method = logger.warning if response.status_code >= 400 else logger.info
    log_method(
        "Request finished",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms,
        trace_id=trace_id
    )

    return response


async def security_headers_middleware(request: Request, call_next: Callable) -> Response:
    """Add a small set of browser hardening headers to every response."""
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    return response


# =============================================================================
# Exception Handlers
# =============================================================================


def _error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    body = ErrorResponse(
        error=error_code.lower(),
        message=message,
        details=details or None,
        trace_id=current_trace_id(),
        timestamp=datetime.now(timezone.utc)
    )
    # mode="json" renders the timestamp as an ISO string
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


async def askdb_exception_handler(request: Request, exc: AskDBException) -> JSONResponse:
    """Render an AskDBException using its own status, code and details."""
    log_method = logger.warning if exc.http_status < 500 else logger.error
    log_method(
        f"{type(exc).__name__}: {exc.message}",
        error_code=exc.error_code,
        http_status=exc.http_status,
        details=exc.details,
        path=request.url.path,
        trace_id=current_trace_id()
    )

    return _error_response(exc.http_status, exc.error_code, exc.message, exc.details)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies, e.g. a schema descriptor without a database name."""
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]

    logger.warning(
        "Request body rejected",
        errors=errors,
        path=request.url.path,
        trace_id=current_trace_id()
    )

    return _error_response(422, "VALIDATION_ERROR", "Request validation failed", {"errors": errors})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing-level errors (unknown path, wrong method) in the common error shape."""
    try:
        error_code = HTTPStatus(exc.status_code).name
    except ValueError:
        error_code = "HTTP_ERROR"

    logger.warning(
        f"HTTP {exc.status_code}: {exc.detail}",
        path=request.url.path,
        trace_id=current_trace_id()
    )

    return _error_response(exc.status_code, error_code, str(exc.detail or error_code))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log everything, tell the client nothing internal."""
    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        trace_id=current_trace_id(),
        exc_info=True
    )

    return _error_response(500, "INTERNAL_ERROR", "An internal server error occurred. Please try again later.")


def register_exception_handlers(app: FastAPI) -> None:
    """
    Install the handlers above on the application.

    Starlette picks the handler registered for the closest class in the
    exception's MRO, so registration order does not matter.
    """
    # add_exception_handler is typed for the base Exception signature
    app.add_exception_handler(AskDBException, askdb_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")


# =============================================================================
# OpenAPI error documentation
# =============================================================================


def _error_example(description: str, error: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    example: Dict[str, Any] = {"error": error, "message": message}
    if details:
        example["details"] = details
    example["trace_id"] = "550e8400-e29b-41d4-a716-446655440000"
    example["timestamp"] = "2024-05-01T10:30:00Z"
    return {"description": description, "content": {"application/json": {"example": example}}}


# Used in route decorators: responses={k: v for k, v in ERROR_RESPONSES.items() if k in [...]}
ERROR_RESPONSES = {
    400: _error_example(
        "Required request fields are missing",
        "bad_request",
        "Question and schema are required",
        {"required": ["question", "schema"]},
    ),
    422: _error_example(
        "Request body failed validation",
        "validation_error",
        "Request validation failed",
        {"errors": [{"field": "body.schema.database", "message": "Field required", "type": "missing"}]},
    ),
    500: _error_example(
        "No usable plan could be generated, or introspection failed",
        "plan_generation_error",
        "invalid plan format",
        {"kind": "invalid_format", "attempts": 3},
    ),
    503: _error_example(
        "The shared database deployment is unavailable",
        "database_connection_error",
        "Database client is not connected",
    ),
}
