"""
Domain package for AskDB.

This package contains all domain models, entities, and value objects
used throughout the application for type safety and validation.
"""

from .base_enums import (
    FieldType,
    ChartType,
    GenerationFailureKind,
    OrchestratorState,
    AttemptOutcome,
    ExecutionMode
)
from .schema import SchemaDescriptor, normalize_field_type
from .plan import QueryPlan, ChartSuggestion
from .requests import QueryRequest, SchemaRequest
from .responses import (
    HealthResponse,
    ErrorResponse,
    ExecutionResult,
    AttemptRecord,
    QueryResponse
)
from .pipeline import RetryContext, QueryPipelineState

__all__ = [
    # Enums
    "FieldType",
    "ChartType",
    "GenerationFailureKind",
    "OrchestratorState",
    "AttemptOutcome",
    "ExecutionMode",

    # Schema
    "SchemaDescriptor",
    "normalize_field_type",

    # Plans
    "QueryPlan",
    "ChartSuggestion",

    # Requests
    "QueryRequest",
    "SchemaRequest",

    # Responses
    "HealthResponse",
    "ErrorResponse",
    "ExecutionResult",
    "AttemptRecord",
    "QueryResponse",

    # Pipeline
    "RetryContext",
    "QueryPipelineState"
]
