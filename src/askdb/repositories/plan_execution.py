"""
Plan Execution Repository.

This repository runs a generated QueryPlan against MongoDB and reports the
outcome as data. It never raises for a bad plan: every failure becomes
ExecutionResult(success=False, error=<raw message>) so the retry loop can
classify it and ask the generator for a repair.

Safety Features:
- Read-only enforcement: stages outside the read-only allow-list ($out,
  $merge, ...) are rejected before anything is sent to the server
- Timeout protection: maxTimeMS on every aggregation and find
- Row limiting: {"$limit": cap} appended when the pipeline has no $limit
  stage; plain find() fallback always limited

Execution Flow:
1. Check stage operators against the allow-list
2. Convert Extended JSON literals ($oid, $date) to BSON values
3. Aggregate (stages present) or find({}) (no stages)
4. Convert result documents to JSON-safe values
5. Return ExecutionResult with count, timing and limit metadata

Usage:
    repo = PlanExecutionRepository(db_client, query_config)
    result = await repo.execute(
        database="sample_db",
        base_collection="invoices",
        stages=[{"$group": {"_id": "$status", "total": {"$sum": "$amount"}}}],
    )
    if not result.success:
        hint = classifier.classify(result.error, result.error_code)
"""

from datetime import datetime, timezone
from typing import List, Optional, Tuple

from askdb.config import QueryConfig
from askdb.domain.base_enums import ExecutionMode
from askdb.domain.errors import DatabaseError, DatabaseQueryError
from askdb.domain.responses import ExecutionResult
from askdb.domain.types import Pipeline, PipelineStage
from askdb.infrastructure.database_client import DatabaseClient
from askdb.utils.bson_utils import from_extended_json, to_json_safe
from askdb.utils.logging import get_module_logger
from askdb.utils.tracing import current_trace_id

logger = get_module_logger()

# Stages that only read data
READ_ONLY_STAGES = frozenset({
    "$addFields", "$bucket", "$bucketAuto", "$count", "$densify", "$documents",
    "$facet", "$fill", "$geoNear", "$graphLookup", "$group", "$limit", "$lookup",
    "$match", "$project", "$redact", "$replaceRoot", "$replaceWith",
    "$sample", "$search", "$searchMeta", "$set", "$setWindowFields", "$skip",
    "$sort", "$sortByCount", "$unionWith", "$unset", "$unwind", "$vectorSearch",
})


class PlanExecutionRepository:
    """
    Repository for plan execution.

    Executes generated pipelines with read-only enforcement and row caps.
    """

    def __init__(self, db_client: DatabaseClient, config: QueryConfig):
        self.db_client = db_client
        self.config = config

    async def execute(
        self,
        database: str,
        base_collection: str,
        stages: Pipeline,
        row_cap: Optional[int] = None,
        connection_descriptor: Optional[str] = None,
    ) -> ExecutionResult:
        """
        Execute a plan's stages against base_collection.

        Args:
            database: Database name
            base_collection: Collection the pipeline starts from
            stages: Aggregation stages; empty runs find({}) instead
            row_cap: Override for the implicit row cap (aggregation or find)
            connection_descriptor: Request-scoped connection string, "sample" or None

        Returns:
            ExecutionResult; success=False carries the raw error instead of raising
        """
        trace_id = current_trace_id()
        mode = ExecutionMode.AGGREGATE if stages else ExecutionMode.FIND

        if self.config.enforce_read_only:
            disallowed = self._find_disallowed_stage(stages)
            if disallowed:
                error = f"Stage {disallowed} is not permitted in a read-only pipeline"
                logger.warning("Rejected non read-only stage", stage=disallowed, trace_id=trace_id)
                return ExecutionResult.failed(error, mode=mode)

        start_time = datetime.now(timezone.utc)

        try:
            if mode is ExecutionMode.AGGREGATE:
                cap = row_cap or self.config.aggregation_row_cap
                pipeline, appended = self.apply_row_cap(stages, cap)
                documents = await self.db_client.aggregate(
                    database=database,
                    collection=base_collection,
                    pipeline=from_extended_json(pipeline),
                    max_time_ms=self.config.execution_timeout_ms,
                    connection_descriptor=connection_descriptor,
                )
            else:
                cap = row_cap or self.config.find_row_cap
                appended = True
                documents = await self.db_client.find(
                    database=database,
                    collection=base_collection,
                    filter={},
                    limit=cap,
                    max_time_ms=self.config.execution_timeout_ms,
                    connection_descriptor=connection_descriptor,
                )

        except DatabaseQueryError as e:
            logger.warning(
                "Plan execution failed",
                error=e.raw_message,
                code=e.code,
                collection=base_collection,
                mode=mode.value,
                trace_id=trace_id,
            )
            return ExecutionResult.failed(e.raw_message, error_code=e.code, mode=mode)

        except DatabaseError as e:
            logger.warning("Plan execution failed", error=e.message, mode=mode.value, trace_id=trace_id)
            return ExecutionResult.failed(e.message, mode=mode)

        except Exception as e:
            # Driver-side encoding errors (bson.errors.InvalidDocument, ...)
            logger.error(
                "Plan execution raised unexpectedly",
                error=str(e),
                error_type=type(e).__name__,
                trace_id=trace_id,
            )
            return ExecutionResult.failed(str(e), mode=mode)

        execution_time_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
        rows = [to_json_safe(document) for document in documents]
        was_limited = appended and len(rows) >= cap

        logger.info(
            "Plan execution successful",
            row_count=len(rows),
            mode=mode.value,
            execution_time_ms=round(execution_time_ms, 2),
            was_limited=was_limited,
            trace_id=trace_id,
        )

        return ExecutionResult(
            success=True,
            rows=rows,
            count=len(rows),
            mode=mode,
            was_limited=was_limited,
            execution_time_ms=execution_time_ms,
        )

    @staticmethod
    def apply_row_cap(stages: Pipeline, cap: int) -> Tuple[Pipeline, bool]:
        """
        Return (pipeline, appended): stages plus a trailing {"$limit": cap}
        when no stage is a $limit. The input list is never modified.
        """
        if any("$limit" in stage for stage in stages):
            return list(stages), False
        return [*stages, {"$limit": cap}], True

    @classmethod
    def _find_disallowed_stage(cls, stages: Pipeline) -> Optional[str]:
        """First operator outside the read-only allow-list, including nested pipelines."""
        for stage in stages:
            if not isinstance(stage, dict):
                continue
            for operator, argument in stage.items():
                if operator not in READ_ONLY_STAGES:
                    return operator
                for nested in cls._nested_pipelines(operator, argument):
                    found = cls._find_disallowed_stage(nested)
                    if found:
                        return found
        return None

    @staticmethod
    def _nested_pipelines(operator: str, argument: object) -> List[List[PipelineStage]]:
        if not isinstance(argument, dict):
            return []
        if operator == "$facet":
            return [value for value in argument.values() if isinstance(value, list)]
        if operator in ("$lookup", "$unionWith") and isinstance(argument.get("pipeline"), list):
            return [argument["pipeline"]]
        return []
