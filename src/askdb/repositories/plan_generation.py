"""
Query Plan Generation Repository.

Handles LLM-based aggregation plan generation:
- Prompt building with schema context and safety policy
- Repair guidance when retrying a failed plan
- LLM interaction
- Response parsing and base collection check
"""

import json
from typing import Optional

from askdb.config import LLMConfig
from askdb.domain.base_enums import GenerationFailureKind
from askdb.domain.errors import LLMError, PlanGenerationError
from askdb.domain.pipeline import RetryContext
from askdb.domain.plan import QueryPlan
from askdb.domain.schema import SchemaDescriptor
from askdb.infrastructure.llm_client import LLMClient
from askdb.utils.logging import get_module_logger
from askdb.utils.tracing import current_trace_id

logger = get_module_logger()

# JSON mode requires the word "JSON" in the system prompt
SYSTEM_PROMPT = (
    "You are a data analyst for a web app. Convert user questions into SAFE, read-only "
    "MongoDB aggregation pipelines using the provided schema metadata. "
    "You MUST respond with a single valid JSON object only - no markdown, no explanation."
)


class PlanGenerationRepository:
    """
    Repository for LLM-based query plan generation.

    Handles prompt construction, LLM interaction and response validation.
    """

    def __init__(self, llm_client: LLMClient, config: LLMConfig, default_result_limit: int = 100):
        self.llm_client = llm_client
        self.config = config
        self.default_result_limit = default_result_limit

    async def generate_plan(
        self,
        question: str,
        schema: SchemaDescriptor,
        retry_context: Optional[RetryContext] = None,
    ) -> QueryPlan:
        """
        Generate a query plan for a natural language question.

        Args:
            question: Natural language question from user
            schema: Schema descriptor of the target database
            retry_context: Error and stages of the previous failed attempt, if any

        Returns:
            QueryPlan whose base_collection is a collection of the schema

        Raises:
            PlanGenerationError: UPSTREAM_UNAVAILABLE when the model call fails,
                INVALID_FORMAT when the reply is not a JSON object,
                INCOMPLETE_PLAN when required keys are missing or the base
                collection is not in the schema
        """
        trace_id = current_trace_id()

        prompt = self._build_prompt(question, schema, retry_context)

        logger.debug(
            "Calling LLM for plan generation",
            prompt_length=len(prompt),
            is_retry=retry_context is not None and not retry_context.is_empty,
            trace_id=trace_id,
        )

        try:
            response = await self.llm_client.generate(
                prompt=prompt,
                system_prompt=SYSTEM_PROMPT,
                json_mode=self.config.json_mode,
            )
        except LLMError as e:
            logger.warning("Plan generation upstream failure", error=e.message, trace_id=trace_id)
            raise PlanGenerationError(
                GenerationFailureKind.UPSTREAM_UNAVAILABLE,
                details={"cause": e.message},
            ) from e

        plan = QueryPlan.from_llm_response(response)

        if not schema.has_collection(plan.base_collection):
            logger.warning(
                "Plan targets a collection outside the schema",
                base_collection=plan.base_collection,
                known_collections=sorted(schema.collections),
                trace_id=trace_id,
            )
            raise PlanGenerationError(
                GenerationFailureKind.INCOMPLETE_PLAN,
                raw_text=response,
                message=f"incomplete plan: unknown base collection '{plan.base_collection}'",
                details={"base_collection": plan.base_collection},
            )

        logger.info(
            "Plan generated",
            base_collection=plan.base_collection,
            stage_operators=plan.stage_operators(),
            trace_id=trace_id,
        )
        return plan

    def _build_prompt(
        self,
        question: str,
        schema: SchemaDescriptor,
        retry_context: Optional[RetryContext] = None,
    ) -> str:
        """Build the prompt for plan generation."""
        collections_section = "\n".join(
            self._describe_collection(schema, name) for name in schema.collections
        ) or "No collections"

        limit = self.default_result_limit

        prompt = f"""Convert the user's question into a read-only MongoDB aggregation pipeline.

## DATABASE
{schema.database}

## COLLECTIONS (use ONLY these collections and fields)
{collections_section}

## DOMAIN NOTES
{schema.domain_notes or 'None'}

## CONTEXT
Timezone: {schema.timezone}
Now: {schema.as_of.isoformat()}

## GENERAL RULES
- SAFETY: Read-only only. Never use stages that write or modify data ($out, $merge).
- PRIVACY: Prefer aggregates over raw lists of personal data.
- SCHEMA FIRST: Use the collections, field types and descriptions above to pick collections and fields.
- PIPELINE QUALITY: Put $match early. Use $lookup/$unwind for relations only when needed.
- NUMBERS: Include units or currency when the field descriptions state them.
- LIMITS: Default result limit {limit} rows. For summaries and top-N questions produce exactly N rows with an explicit $limit.
- DATES: Write date literals as {{"$date": "<ISO-8601>"}} and ObjectId literals as {{"$oid": "<24 hex>"}}.
- Every pipeline stage is an object with exactly one operator key.

## REQUIRED JSON RESPONSE FORMAT
{{
  "final_answer": "One or two sentences summarizing the result with headline numbers.",
  "assumptions": ["list of assumptions or defaults used"],
  "base_collection": "<one of the collections above>",
  "pipeline": [ ... ],
  "columns": ["ordered", "column", "names"],
  "chart_suggestions": [
    {{"type": "table", "title": "Tabular results"}},
    {{"type": "bar", "x": "field1", "y": "field2", "title": "Chart title"}}
  ]
}}

## USER QUESTION
{question}

"""

        if retry_context is not None and not retry_context.is_empty:
            prompt += f"""## PREVIOUS ATTEMPT FAILED - FIX REQUIRED
Previous pipeline: {json.dumps(retry_context.prior_plan_stages, default=str)}
Error: {retry_context.prior_error or 'unknown error'}

Repair guidance:
- $slice takes an array expression and a number: {{"$slice": ["$items", 5]}}, never an object.
- $lookup needs "from", "localField", "foreignField" and "as" (or "from", "let", "pipeline", "as").
- Field paths start with "$" inside expressions ("$amount") and never inside $project keys or $group _id names.
- Field names must not be empty and must not start with "$".

Fix the pipeline and respond with the corrected JSON object.

"""

        prompt += "Respond with the JSON object only:"

        return prompt

    @staticmethod
    def _describe_collection(schema: SchemaDescriptor, name: str) -> str:
        lines = [f"### {name}: {schema.collection_description(name) or 'No description'}"]
        for field, field_type in schema.collections[name].items():
            description = schema.field_description(name, field)
            lines.append(
                f"- {field} ({field_type.value})" + (f": {description}" if description else "")
            )
        return "\n".join(lines)
