"""
Query Service - Retry orchestrator for natural language questions.

This service is a THIN ORCHESTRATOR that coordinates repositories:
1. PlanGenerationRepository - LLM-based plan generation
2. PlanExecutionRepository - Read-only execution against MongoDB
3. ErrorClassificationRepository - Repair hints for failed executions
4. ChartSuggestionRepository - Default chart hints

The loop is an explicit state machine:

    GENERATING -> EXECUTING -> SUCCEEDED
                            -> RETRYING -> GENERATING
                            -> EXHAUSTED
    GENERATING -> RETRYING (generation failed, budget left)
               -> EXHAUSTED (generation failed on the last attempt, error raised)

Attempts are strictly sequential; attempt N+1 is generated with the error
and stages of attempt N.
"""

from datetime import datetime, timezone
from typing import Optional

from askdb.config import QueryConfig
from askdb.domain.base_enums import AttemptOutcome, OrchestratorState
from askdb.domain.errors import PlanGenerationError
from askdb.domain.pipeline import QueryPipelineState, RetryContext
from askdb.domain.plan import QueryPlan
from askdb.domain.responses import AttemptRecord, QueryResponse
from askdb.domain.schema import SchemaDescriptor
from askdb.repositories.chart_suggestion import ChartSuggestionRepository
from askdb.repositories.error_classification import ErrorClassificationRepository
from askdb.repositories.plan_execution import PlanExecutionRepository
from askdb.repositories.plan_generation import PlanGenerationRepository
from askdb.utils.logging import get_module_logger
from askdb.utils.tracing import current_trace_id

logger = get_module_logger()


class QueryService:
    """
    Orchestrates generate -> execute -> repair for one question.

    Total attempts = max_retries + 1.
    """

    def __init__(
        self,
        plan_generation_repository: PlanGenerationRepository,
        plan_execution_repository: PlanExecutionRepository,
        error_classification_repository: ErrorClassificationRepository,
        chart_suggestion_repository: ChartSuggestionRepository,
        config: QueryConfig,
    ):
        self.generation_repo = plan_generation_repository
        self.execution_repo = plan_execution_repository
        self.classification_repo = error_classification_repository
        self.chart_repo = chart_suggestion_repository
        self.config = config

        logger.info(
            "QueryService initialized",
            max_retries=config.max_retries,
            aggregation_row_cap=config.aggregation_row_cap,
            find_row_cap=config.find_row_cap,
        )

    @property
    def max_attempts(self) -> int:
        return self.config.max_retries + 1

    async def answer_question(
        self,
        question: str,
        schema: SchemaDescriptor,
        connection_descriptor: Optional[str] = None,
    ) -> QueryResponse:
        """
        Answer a question: generate a plan, execute it, repair on failure.

        Args:
            question: Natural language question
            schema: Schema descriptor of the target database
            connection_descriptor: Request-scoped connection string, "sample" or None

        Returns:
            QueryResponse with the final plan and result. The result may be
            unsuccessful if every attempt failed at execution.

        Raises:
            PlanGenerationError: If generation fails on the final attempt
        """
        trace_id = current_trace_id()
        start_time = datetime.now(timezone.utc)

        logger.info(
            "Starting query pipeline",
            question_length=len(question),
            database=schema.database,
            collection_count=len(schema.collections),
            max_attempts=self.max_attempts,
            trace_id=trace_id,
        )

        state = QueryPipelineState(
            question=question,
            schema=schema,
            connection_descriptor=connection_descriptor,
            max_attempts=self.max_attempts,
        )

        while state.state not in (OrchestratorState.SUCCEEDED, OrchestratorState.EXHAUSTED):
            if state.state is OrchestratorState.RETRYING:
                self._transition(state, OrchestratorState.GENERATING)

            plan = await self._step_generate(state)
            if plan is None:
                continue

            self._transition(state, OrchestratorState.EXECUTING)
            await self._step_execute(state, plan)

        return self._build_response(state, start_time)

    # =========================================================================
    # Pipeline Steps (thin - delegate to repositories)
    # =========================================================================

    async def _step_generate(self, state: QueryPipelineState) -> Optional[QueryPlan]:
        """Generate a plan; on failure record it and either schedule a retry or raise."""
        trace_id = current_trace_id()
        attempt = state.attempt_number

        logger.info(f"Plan generation attempt {attempt}/{state.max_attempts}", trace_id=trace_id)

        try:
            return await self.generation_repo.generate_plan(
                question=state.question,
                schema=state.schema,
                retry_context=state.retry_context,
            )
        except PlanGenerationError as e:
            state.attempts.append(AttemptRecord(
                attempt=attempt,
                outcome=AttemptOutcome.GENERATION_FAILED,
                error=e.message,
            ))

            if state.attempts_remaining <= 0:
                self._transition(state, OrchestratorState.EXHAUSTED)
                logger.error(
                    "Plan generation failed on final attempt",
                    kind=e.kind.value,
                    attempts=len(state.attempts),
                    trace_id=trace_id,
                )
                e.details["attempts"] = len(state.attempts)
                raise

            logger.warning(
                "Plan generation failed, retrying",
                kind=e.kind.value,
                error=e.message,
                attempt=attempt,
                trace_id=trace_id,
            )
            state.retry_context = RetryContext(
                prior_error=f"Previous response could not be used: {e.message}",
                prior_plan_stages=list(state.plan.stages) if state.plan else [],
            )
            self._transition(state, OrchestratorState.RETRYING)
            return None

    async def _step_execute(self, state: QueryPipelineState, plan: QueryPlan) -> None:
        """Execute the plan; on failure classify the error and schedule a retry if budget remains."""
        trace_id = current_trace_id()
        attempt = state.attempt_number

        result = await self.execution_repo.execute(
            database=state.schema.database,
            base_collection=plan.base_collection,
            stages=plan.stages,
            connection_descriptor=state.connection_descriptor,
        )
        state.plan = plan
        state.result = result

        if result.success:
            state.attempts.append(AttemptRecord(
                attempt=attempt,
                outcome=AttemptOutcome.SUCCEEDED,
                base_collection=plan.base_collection,
                stages=plan.stages,
            ))
            self._transition(state, OrchestratorState.SUCCEEDED)
            logger.info(
                "Query pipeline succeeded",
                attempt=attempt,
                row_count=result.count,
                trace_id=trace_id,
            )
            return

        hint = self.classification_repo.classify(result.error, result.error_code)
        state.attempts.append(AttemptRecord(
            attempt=attempt,
            outcome=AttemptOutcome.EXECUTION_FAILED,
            base_collection=plan.base_collection,
            stages=plan.stages,
            error=result.error,
            error_hint=hint,
        ))

        if state.attempts_remaining <= 0:
            self._transition(state, OrchestratorState.EXHAUSTED)
            logger.warning(
                f"Query pipeline exhausted after {len(state.attempts)} attempts",
                last_error=result.error,
                trace_id=trace_id,
            )
            return

        logger.info(
            "Execution failed, retrying with repair context",
            attempt=attempt,
            classified=hint is not None,
            trace_id=trace_id,
        )
        state.retry_context = RetryContext(
            prior_error=hint or result.error,
            prior_plan_stages=list(plan.stages),
        )
        self._transition(state, OrchestratorState.RETRYING)

    @staticmethod
    def _transition(state: QueryPipelineState, new_state: OrchestratorState) -> None:
        logger.debug(
            "Orchestrator transition",
            from_state=state.state.value,
            to_state=new_state.value,
            attempt=len(state.attempts),
            trace_id=current_trace_id(),
        )
        state.state = new_state

    # =========================================================================
    # Response Building
    # =========================================================================

    def _build_response(self, state: QueryPipelineState, start_time: datetime) -> QueryResponse:
        """Build the final API response."""
        trace_id = current_trace_id() or "unknown"
        total_time_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000

        # The loop only ends through an execution, so both are set here
        if state.plan is None or state.result is None:
            raise RuntimeError("Query pipeline ended without an executed attempt")
        plan, result = state.plan, state.result

        chart_suggestions = plan.chart_suggestions or self.chart_repo.suggest(result.rows)

        return QueryResponse(
            trace_id=trace_id,
            question=state.question,
            state=state.state,
            plan=plan,
            result=result,
            chart_suggestions=chart_suggestions,
            attempts=state.attempts,
            total_time_ms=total_time_ms,
        )
