"""
Query plan models and LLM response parsing.

A QueryPlan is what the generator promises to run: a base collection and an
ordered aggregation pipeline, plus presentation hints (answer framing,
assumptions, expected columns, chart suggestions).

Parsing is strict about structure and lenient about wrapping: markdown fences
and chatter around the JSON object are removed, but a response without a base
collection or pipeline is rejected instead of being half-filled. Malformed
presentation hints are coerced or dropped.
"""

import json
import re
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .base_enums import GenerationFailureKind
from .errors import PlanGenerationError
from .types import Pipeline
from ..utils.logging import get_module_logger

logger = get_module_logger()

# ```json ... ```, ```JSON ... ```, ```javascript ... ```, ``` ... ```
_FENCE_PATTERN = re.compile(r'^```[ \t]*[\w+.\-]*[ \t]*\n?(.*?)\n?\s*```$', re.DOTALL)

# Keys that must be present in the parsed object (either spelling)
_BASE_COLLECTION_KEYS = ("base_collection", "baseCollection")
_STAGES_KEYS = ("pipeline", "stages")


class ChartSuggestion(BaseModel):
    """Visualization hint for a result set."""

    type: str = Field(..., description="Chart type: table, bar, line, pie, area")
    title: str = Field(default="", description="Chart title")
    x: Optional[str] = Field(default=None, description="Category / x-axis field")
    y: Optional[str] = Field(default=None, description="Value / y-axis field")

    @field_validator("type", mode="before")
    @classmethod
    def _lower_type(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class QueryPlan(BaseModel):
    """Structured output of the query plan generator."""

    model_config = ConfigDict(populate_by_name=True)

    final_answer: str = Field(
        default="",
        validation_alias=AliasChoices("final_answer", "finalAnswer", "final_answer_template"),
        description="Predicted natural-language framing of the result",
    )
    assumptions: List[str] = Field(
        default_factory=list,
        description="Defaults and ambiguity resolutions made by the generator",
    )
    base_collection: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("base_collection", "baseCollection"),
        description="Collection the pipeline starts from",
    )
    stages: Pipeline = Field(
        default_factory=list,
        validation_alias=AliasChoices("stages", "pipeline"),
        description="Aggregation stages; empty means plain find() fallback",
    )
    columns: List[str] = Field(default_factory=list, description="Expected output columns")
    chart_suggestions: List[ChartSuggestion] = Field(
        default_factory=list,
        validation_alias=AliasChoices("chart_suggestions", "chartSuggestions"),
        description="Generator-supplied visualization hints",
    )

    @field_validator("stages")
    @classmethod
    def _single_operator_stages(cls, stages: Pipeline) -> Pipeline:
        for index, stage in enumerate(stages):
            if len(stage) != 1:
                raise ValueError(f"stage {index} must have exactly one operator, got {len(stage)}")
            operator = next(iter(stage))
            if not operator.startswith("$"):
                raise ValueError(f"stage {index} operator '{operator}' must start with '$'")
        return stages

    # Presentation fields never reject a plan; only base_collection and stages are strict

    @field_validator("final_answer", mode="before")
    @classmethod
    def _coerce_final_answer(cls, value: Any) -> str:
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return ""

    @field_validator("assumptions", "columns", mode="before")
    @classmethod
    def _coerce_string_list(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        if not isinstance(value, list):
            return []
        return [
            item if isinstance(item, str) else str(item)
            for item in value
            if isinstance(item, (str, int, float)) and not isinstance(item, bool)
        ]

    @field_validator("chart_suggestions", mode="before")
    @classmethod
    def _drop_invalid_charts(cls, value: Any) -> List[ChartSuggestion]:
        if isinstance(value, dict):
            value = [value]
        if not isinstance(value, list):
            return []

        charts: List[ChartSuggestion] = []
        for entry in value:
            try:
                charts.append(ChartSuggestion.model_validate(entry))
            except PydanticValidationError as e:
                logger.warning(
                    "Dropping unusable chart suggestion",
                    entry=entry,
                    errors=[err["msg"] for err in e.errors()],
                )
        return charts

    def stage_operators(self) -> List[str]:
        return [next(iter(stage)) for stage in self.stages]

    @classmethod
    def from_llm_response(cls, response: str) -> "QueryPlan":
        """
        Parse an LLM completion into a QueryPlan.

        Handles:
        - Markdown-wrapped JSON with any language tag: ```json {...} ```
        - Prose before/after the object: extracts the first balanced {...}
        - Clean JSON (parsed as-is, so serialized plans round-trip unchanged)

        Raises:
            PlanGenerationError: INVALID_FORMAT when no JSON object can be
                parsed, INCOMPLETE_PLAN when required keys are missing or the
                object does not validate as a plan.
        """
        if not response or not response.strip():
            raise PlanGenerationError(
                GenerationFailureKind.UPSTREAM_UNAVAILABLE,
                raw_text=response,
                message="upstream returned no content",
            )

        cleaned = cls._strip_code_fence(response)
        data = cls._parse_json_object(cleaned)

        if data is None:
            logger.warning(
                "LLM response is not a JSON object",
                preview=response[:200],
            )
            raise PlanGenerationError(GenerationFailureKind.INVALID_FORMAT, raw_text=response)

        missing = [
            name for name, keys in (("base_collection", _BASE_COLLECTION_KEYS), ("stages", _STAGES_KEYS))
            if not any(data.get(key) is not None for key in keys)
        ]
        if missing:
            raise PlanGenerationError(
                GenerationFailureKind.INCOMPLETE_PLAN,
                raw_text=response,
                details={"missing": missing},
            )

        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise PlanGenerationError(
                GenerationFailureKind.INCOMPLETE_PLAN,
                raw_text=response,
                details={"errors": [err["msg"] for err in e.errors()]},
            ) from e

    @staticmethod
    def _strip_code_fence(text: str) -> str:
        """Remove a surrounding ``` fence regardless of its language tag."""
        cleaned = text.strip()

        match = _FENCE_PATTERN.match(cleaned)
        if match:
            return match.group(1).strip()

        # Unbalanced fences: drop an opening fence line and/or a closing fence
        if cleaned.startswith("```"):
            newline = cleaned.find("\n")
            cleaned = cleaned[newline + 1:] if newline != -1 else cleaned[3:]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]

        return cleaned.strip()

    @classmethod
    def _parse_json_object(cls, text: str) -> Optional[Dict[str, Any]]:
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            span = cls._extract_balanced_object(text)
            if span is None:
                return None
            try:
                parsed = json.loads(span)
            except json.JSONDecodeError:
                return None

        return parsed if isinstance(parsed, dict) else None

    @staticmethod
    def _extract_balanced_object(text: str) -> Optional[str]:
        """
        Return the first balanced {...} span of text, or None.

        Braces inside JSON string literals are ignored.
        """
        start = text.find("{")
        if start == -1:
            return None

        depth = 0
        in_string = False
        escaped = False

        for index in range(start, len(text)):
            char = text[index]

            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue

            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]

        return None
