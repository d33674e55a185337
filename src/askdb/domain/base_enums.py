from enum import Enum


class FieldType(str, Enum):
    """Type tags used in SchemaDescriptor.collections."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    OBJECT_ID = "object-id"
    ARRAY = "array"
    OBJECT = "object"
    ANY = "any"


class ChartType(str, Enum):
    TABLE = "table"
    BAR = "bar"
    LINE = "line"
    PIE = "pie"
    AREA = "area"


class GenerationFailureKind(str, Enum):
    """Why the generator could not produce a plan."""
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    INVALID_FORMAT = "invalid_format"
    INCOMPLETE_PLAN = "incomplete_plan"


class OrchestratorState(str, Enum):
    """States of the generate/execute retry loop."""
    GENERATING = "generating"
    EXECUTING = "executing"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class AttemptOutcome(str, Enum):
    """How a single generate/execute attempt ended."""
    SUCCEEDED = "succeeded"
    EXECUTION_FAILED = "execution_failed"
    GENERATION_FAILED = "generation_failed"


class ExecutionMode(str, Enum):
    """Which read path the executor took."""
    AGGREGATE = "aggregate"
    FIND = "find"
