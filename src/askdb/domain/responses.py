"""
API response models for AskDB.

These models define the structure for all outgoing API responses,
ensuring consistent response formats and type safety.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .base_enums import AttemptOutcome, ExecutionMode, OrchestratorState
from .plan import ChartSuggestion, QueryPlan
from .types import Pipeline, ResultRow


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Health status", examples=["healthy", "degraded"])
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Application version")
    database_status: str = Field(..., description="Shared MongoDB pool status")
    llm_service_status: str = Field(..., description="LLM service status")


class ErrorResponse(BaseModel):
    """Response model for error responses."""

    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional error details"
    )
    trace_id: Optional[str] = Field(
        default=None,
        description="Trace ID for debugging"
    )
    timestamp: datetime = Field(..., description="Error timestamp")


class ExecutionResult(BaseModel):
    """
    Outcome of running one plan against the document store.

    Execution failures are data: success=False with the raw driver message in
    `error`, so the retry loop can classify and repair them.
    """

    success: bool = Field(..., description="Whether the plan ran without error")
    rows: List[ResultRow] = Field(default_factory=list, description="Result documents (JSON-safe)")
    error: Optional[str] = Field(default=None, description="Raw error message when unsuccessful")
    error_code: Optional[int] = Field(default=None, description="Driver error code, when reported")
    count: int = Field(default=0, description="Number of rows returned")
    mode: Optional[ExecutionMode] = Field(default=None, description="aggregate or find")
    was_limited: bool = Field(
        default=False,
        description="Whether a row cap imposed by the executor was reached",
    )
    execution_time_ms: Optional[float] = Field(default=None, description="Execution time in milliseconds")

    @classmethod
    def failed(
        cls,
        error: str,
        error_code: Optional[int] = None,
        mode: Optional[ExecutionMode] = None,
    ) -> "ExecutionResult":
        return cls(success=False, error=error, error_code=error_code, mode=mode)


class AttemptRecord(BaseModel):
    """Audit entry for one generate/execute attempt."""

    attempt: int = Field(..., ge=1, description="1-based attempt number")
    outcome: AttemptOutcome = Field(..., description="How the attempt ended")
    base_collection: Optional[str] = Field(default=None, description="Collection the plan targeted")
    stages: Pipeline = Field(default_factory=list, description="Stages that were generated")
    error: Optional[str] = Field(default=None, description="Raw generation or execution error")
    error_hint: Optional[str] = Field(default=None, description="Classified repair hint, if any")


class QueryResponse(BaseModel):
    """Response model for POST /api/query."""

    trace_id: str = Field(..., description="Unique trace ID for this request")
    question: str = Field(..., description="Original natural language question")
    state: OrchestratorState = Field(..., description="Terminal state: succeeded or exhausted")
    plan: QueryPlan = Field(..., description="Plan of the final attempt")
    result: ExecutionResult = Field(..., description="Execution result of the final attempt")
    chart_suggestions: List[ChartSuggestion] = Field(
        default_factory=list,
        description="Generator suggestions, or heuristic defaults when it supplied none",
    )
    attempts: List[AttemptRecord] = Field(default_factory=list, description="Every attempt made")
    total_time_ms: float = Field(..., description="Total request processing time in milliseconds")
