"""
Unit tests for PlanGenerationRepository.

The LLM is replaced by a fake that returns canned completions and records
every prompt, so prompt content and failure mapping can be checked offline.
"""

import json

import pytest

from askdb.config import LLMConfig
from askdb.domain.base_enums import GenerationFailureKind
from askdb.domain.errors import LLMError, PlanGenerationError
from askdb.domain.pipeline import RetryContext
from askdb.domain.schema import SchemaDescriptor
from askdb.repositories.plan_generation import PlanGenerationRepository, SYSTEM_PROMPT


class FakeLLMClient:
    """Returns queued completions in order; an Exception entry is raised instead."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def generate(self, prompt, system_prompt=None, json_mode=False, **kwargs):
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt, "json_mode": json_mode})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def schema():
    return SchemaDescriptor(
        database="sample_db",
        collections={
            "drivers": {"_id": "object-id", "name": "string", "city": "string"},
            "invoices": {"_id": "object-id", "driver_id": "object-id", "amount": "number"},
        },
        collection_descriptions={"invoices": "Trip invoices"},
        field_descriptions={"invoices": {"amount": "Invoice amount in INR"}},
        domain_notes="Revenue is the sum of invoices.amount",
        timezone="Asia/Kolkata",
        as_of="2024-05-01T10:00:00Z",
    )


@pytest.fixture
def llm_config():
    return LLMConfig(openrouter_api_key="test-key")


def plan_json(**overrides):
    plan = {
        "final_answer": "Revenue per city.",
        "base_collection": "invoices",
        "pipeline": [{"$group": {"_id": "$city", "revenue": {"$sum": "$amount"}}}],
    }
    plan.update(overrides)
    return json.dumps(plan)


class TestGeneratePlan:

    @pytest.mark.asyncio
    async def test_valid_plan(self, schema, llm_config):
        llm = FakeLLMClient(plan_json())
        repo = PlanGenerationRepository(llm, llm_config)  # type: ignore[arg-type]

        plan = await repo.generate_plan("Revenue by city?", schema)

        assert plan.base_collection == "invoices"
        assert plan.stage_operators() == ["$group"]
        assert llm.calls[0]["system_prompt"] == SYSTEM_PROMPT
        assert llm.calls[0]["json_mode"] is True

    @pytest.mark.asyncio
    async def test_unknown_collection(self, schema, llm_config):
        repo = PlanGenerationRepository(FakeLLMClient(plan_json(base_collection="trips")), llm_config)  # type: ignore[arg-type]

        with pytest.raises(PlanGenerationError) as exc_info:
            await repo.generate_plan("How many trips?", schema)

        assert exc_info.value.kind is GenerationFailureKind.INCOMPLETE_PLAN
        assert exc_info.value.message == "incomplete plan: unknown base collection 'trips'"

    @pytest.mark.asyncio
    async def test_llm_error_is_upstream_unavailable(self, schema, llm_config):
        repo = PlanGenerationRepository(FakeLLMClient(LLMError("rate limited")), llm_config)  # type: ignore[arg-type]

        with pytest.raises(PlanGenerationError) as exc_info:
            await repo.generate_plan("Revenue by city?", schema)

        assert exc_info.value.kind is GenerationFailureKind.UPSTREAM_UNAVAILABLE
        assert exc_info.value.details["cause"] == "rate limited"

    @pytest.mark.asyncio
    async def test_prose_reply_is_invalid_format(self, schema, llm_config):
        repo = PlanGenerationRepository(FakeLLMClient("Sorry, I can't help."), llm_config)  # type: ignore[arg-type]

        with pytest.raises(PlanGenerationError) as exc_info:
            await repo.generate_plan("Revenue by city?", schema)

        assert exc_info.value.kind is GenerationFailureKind.INVALID_FORMAT


class TestPrompt:

    def make_repo(self, llm_config):
        return PlanGenerationRepository(FakeLLMClient(), llm_config, default_result_limit=25)  # type: ignore[arg-type]

    def test_schema_context_included(self, schema, llm_config):
        prompt = self.make_repo(llm_config)._build_prompt("Revenue by city?", schema)

        assert "## DATABASE\nsample_db" in prompt
        assert "### invoices: Trip invoices" in prompt
        assert "### drivers: No description" in prompt
        assert "- amount (number): Invoice amount in INR" in prompt
        assert "- driver_id (object-id)" in prompt
        assert "Revenue is the sum of invoices.amount" in prompt
        assert "Timezone: Asia/Kolkata" in prompt
        assert "Now: 2024-05-01T10:00:00+00:00" in prompt
        assert "Default result limit 25 rows" in prompt
        assert "## USER QUESTION\nRevenue by city?" in prompt
        assert prompt.endswith("Respond with the JSON object only:")

    def test_first_attempt_has_no_repair_section(self, schema, llm_config):
        repo = self.make_repo(llm_config)

        assert "PREVIOUS ATTEMPT FAILED" not in repo._build_prompt("q", schema)
        assert "PREVIOUS ATTEMPT FAILED" not in repo._build_prompt("q", schema, RetryContext())

    def test_retry_includes_error_and_stages(self, schema, llm_config):
        context = RetryContext(
            prior_error="$slice expects an array expression",
            prior_plan_stages=[{"$project": {"top": {"$slice": [{"a": 1}, 3]}}}],
        )

        prompt = self.make_repo(llm_config)._build_prompt("q", schema, context)

        assert "## PREVIOUS ATTEMPT FAILED - FIX REQUIRED" in prompt
        assert "Error: $slice expects an array expression" in prompt
        assert '"$slice": [{"a": 1}, 3]' in prompt
        assert prompt.index("## USER QUESTION") < prompt.index("## PREVIOUS ATTEMPT FAILED")

    @pytest.mark.asyncio
    async def test_retry_context_reaches_llm(self, schema, llm_config):
        llm = FakeLLMClient(plan_json())
        repo = PlanGenerationRepository(llm, llm_config)  # type: ignore[arg-type]

        await repo.generate_plan("q", schema, RetryContext(prior_error="boom", prior_plan_stages=[]))

        assert "Error: boom" in llm.calls[0]["prompt"]
