"""
Pipeline state models for the question -> plan -> result loop.

These models represent the state that flows through one orchestrated request.
None of it outlives the request.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .base_enums import OrchestratorState
from .plan import QueryPlan
from .responses import AttemptRecord, ExecutionResult
from .schema import SchemaDescriptor
from .types import Pipeline


@dataclass(frozen=True)
class RetryContext:
    """
    Feedback handed to the next generation attempt.

    prior_error is the classified hint when one matched, else the raw error.
    prior_plan_stages are the stages of the attempt that failed.
    """

    prior_error: Optional[str] = None
    prior_plan_stages: Pipeline = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.prior_error is None and not self.prior_plan_stages


@dataclass
class QueryPipelineState:
    """
    State of one orchestrated request.

    Only the retry orchestrator writes to it, one attempt at a time.
    """

    # Input
    question: str
    schema: SchemaDescriptor
    connection_descriptor: Optional[str]
    max_attempts: int

    # Loop bookkeeping
    state: OrchestratorState = OrchestratorState.GENERATING
    retry_context: RetryContext = field(default_factory=RetryContext)
    attempts: List[AttemptRecord] = field(default_factory=list)

    # Last attempt's artefacts
    plan: Optional[QueryPlan] = None
    result: Optional[ExecutionResult] = None

    @property
    def attempt_number(self) -> int:
        """1-based number of the attempt currently running."""
        return len(self.attempts) + 1

    @property
    def attempts_remaining(self) -> int:
        return self.max_attempts - len(self.attempts)
