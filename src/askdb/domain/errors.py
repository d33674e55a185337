"""
Custom exception hierarchy for AskDB.

This module defines the exception hierarchy with:
- Consistent error codes for API responses
- HTTP status code mappings for FastAPI
- Detailed error messages for debugging

Exception Categories:
- 4xx Client Errors: BadRequestError (422s come from request validation)
- 5xx Server Errors: PlanGenerationError, LLMError, DatabaseError, etc.

Execution failures of a generated plan are NOT exceptions: the executor
reports them as ExecutionResult(success=False) so the retry loop can repair
them. Only infrastructure and generation failures are raised.

Usage:
    raise BadRequestError("Question and schema are required")
    raise PlanGenerationError(GenerationFailureKind.INCOMPLETE_PLAN, details={"missing": ["stages"]})
"""

from typing import Any, Dict, Optional

from .base_enums import GenerationFailureKind


class AskDBException(Exception):
    """
    Base exception for all AskDB errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code (e.g., "PLAN_GENERATION_ERROR")
        http_status: HTTP status code to return (default: 500)
        details: Optional dictionary with additional error context
    """

    error_code: str = "INTERNAL_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        http_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        if http_status:
            self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Client Errors (4xx)
# =============================================================================


class BadRequestError(AskDBException):
    """
    Raised when required request fields are missing or unusable.

    HTTP Status: 400 Bad Request

    Examples:
        - Query request without a question or schema
        - Schema request without a connection descriptor or database name
    """

    error_code = "BAD_REQUEST"
    http_status = 400


# =============================================================================
# Database Errors (5xx)
# =============================================================================


class DatabaseError(AskDBException):
    """
    Base class for database-related errors.

    HTTP Status: 503 Service Unavailable
    """

    error_code = "DATABASE_ERROR"
    http_status = 503


class DatabaseConnectionError(DatabaseError):
    """
    Raised when a MongoDB deployment cannot be reached.

    HTTP Status: 503 Service Unavailable

    Examples:
        - Server selection timeout
        - Authentication failure
        - Malformed connection string
    """

    error_code = "DATABASE_CONNECTION_ERROR"
    http_status = 503


class DatabaseQueryError(DatabaseError):
    """
    Raised by DatabaseClient when an aggregation or find fails.

    HTTP Status: 500 Internal Server Error

    details["code"] carries the driver error code when MongoDB reports one.
    The plan executor converts this error into an unsuccessful ExecutionResult.
    """

    error_code = "DATABASE_QUERY_ERROR"
    http_status = 500

    def __init__(
        self,
        message: str,
        raw_message: Optional[str] = None,
        code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = dict(details or {})
        if code is not None:
            merged["code"] = code
        super().__init__(message, details=merged)
        self.raw_message = raw_message or message
        self.code = code


class SchemaIntrospectionError(AskDBException):
    """
    Raised when a live database cannot be introspected.

    HTTP Status: 500 Internal Server Error
    """

    error_code = "SCHEMA_INTROSPECTION_ERROR"
    http_status = 500


# =============================================================================
# LLM Errors (5xx)
# =============================================================================


class LLMError(AskDBException):
    """
    Raised when LLM operations fail.

    HTTP Status: 503 Service Unavailable

    Examples:
        - LLM API unreachable
        - Empty completion
        - Input exceeds configured character limit
    """

    error_code = "LLM_ERROR"
    http_status = 503


class PlanGenerationError(AskDBException):
    """
    Raised when the generator cannot produce a usable query plan.

    HTTP Status: 500 Internal Server Error

    The failure kind lets callers branch without inspecting messages:
        - UPSTREAM_UNAVAILABLE: the model call failed or returned nothing
        - INVALID_FORMAT: the completion could not be parsed as a JSON object
        - INCOMPLETE_PLAN: the JSON object lacks base_collection/stages or
          names a collection outside the schema

    The retry orchestrator absorbs these while attempts remain; only a
    failure on the final attempt reaches the API layer.
    """

    error_code = "PLAN_GENERATION_ERROR"
    http_status = 500

    _DEFAULT_MESSAGES = {
        GenerationFailureKind.UPSTREAM_UNAVAILABLE: "upstream unavailable",
        GenerationFailureKind.INVALID_FORMAT: "invalid plan format",
        GenerationFailureKind.INCOMPLETE_PLAN: "incomplete plan",
    }

    def __init__(
        self,
        kind: GenerationFailureKind,
        raw_text: Optional[str] = None,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = {"kind": kind.value, **(details or {})}
        super().__init__(message or self._DEFAULT_MESSAGES[kind], details=merged)
        self.kind = kind
        self.raw_text = raw_text
