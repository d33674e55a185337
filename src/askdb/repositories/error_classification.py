"""
Execution Error Classification Repository.

Maps raw MongoDB error messages onto short repair hints that are fed back
to the generator on retry. Classification is a fixed, ordered lookup:
server error codes first (when the driver reports one), then substring
patterns from the most specific to the most generic. Unknown errors yield
None so the caller falls back to the raw message.
"""

from typing import Dict, Optional, Sequence, Tuple

from askdb.utils.logging import get_module_logger

logger = get_module_logger()


SLICE_HINT = (
    "$slice expects an array expression and a count, for example "
    '{"$slice": ["$items", 5]}. Do not pass an object as the first argument.'
)
DISALLOWED_STAGE_HINT = (
    "The rejected stage is not in the read-only allow-list. Rewrite the pipeline with "
    "read-only stages such as $match, $group, $project, $lookup, $sort and $limit; "
    "$out and $merge are never allowed."
)
TIMEOUT_HINT = (
    "The pipeline exceeded the time limit. Add a selective $match as the first stage, "
    "project fewer fields and avoid unnecessary $lookup stages."
)
UNRECOGNIZED_OPERATOR_HINT = (
    "A stage or operator name is not recognized. Use only standard MongoDB aggregation "
    "stages and operators, spelled exactly and prefixed with '$'."
)
EMPTY_FIELD_HINT = (
    "A field name or field path is empty. Every key and every '$field' reference must "
    "name a real field; remove empty strings and lone '$' values."
)
FIELD_PATH_HINT = (
    "A field path is invalid. Use '$field' (or '$parent.child') inside expressions, and "
    "plain names without '$' as output keys in $project, $group and $addFields."
)
LOOKUP_HINT = (
    "$lookup is misconfigured. Provide from, localField, foreignField and as "
    "(or from, let, pipeline and as), using collection names from the schema."
)
UNWIND_HINT = (
    '$unwind must be given a path to an array field, for example {"$unwind": "$items"}; '
    "add preserveNullAndEmptyArrays when documents may lack the field."
)
PROJECT_HINT = (
    "$project or $addFields is misconfigured. Do not mix field inclusion and exclusion "
    "(except _id) and use valid expressions for computed fields."
)
GROUP_HINT = (
    "$group is misconfigured. It requires an _id, and every other field must use an "
    "accumulator such as $sum, $avg, $min, $max, $first or $push."
)
MATCH_HINT = (
    "$match is misconfigured. Use query operators ($eq, $gt, $in, ...) on fields, and wrap "
    "aggregation expressions in $expr."
)
SORT_HINT = (
    "$sort is misconfigured. Each sort key must map to 1 (ascending) or -1 (descending)."
)


# Server error codes that identify a failure class without looking at the text
_CODE_HINTS: Dict[int, str] = {
    28724: SLICE_HINT,                    # First argument to $slice must be an array
    50: TIMEOUT_HINT,                     # MaxTimeMSExpired
    40324: UNRECOGNIZED_OPERATOR_HINT,    # Unrecognized pipeline stage name
    168: UNRECOGNIZED_OPERATOR_HINT,      # InvalidPipelineOperator
    40352: EMPTY_FIELD_HINT,              # FieldPath cannot be constructed with empty string
    16410: FIELD_PATH_HINT,               # FieldPath field names may not start with '$'
}

# Ordered from most specific to most generic; first match wins.
# Patterns are matched case-insensitively.
_PATTERN_HINTS: Tuple[Tuple[Sequence[str], str], ...] = (
    (("slice must be an array", "argument to $slice", "$slice must"), SLICE_HINT),
    (("not permitted in a read-only pipeline",), DISALLOWED_STAGE_HINT),
    (("exceeded time limit", "maxtimemsexpired"), TIMEOUT_HINT),
    (
        ("unrecognized pipeline stage name", "unrecognized expression", "unknown operator", "unrecognized"),
        UNRECOGNIZED_OPERATOR_HINT,
    ),
    (("empty string", "empty field name"), EMPTY_FIELD_HINT),
    (("fieldpath", "field path"), FIELD_PATH_HINT),
    (("$lookup",), LOOKUP_HINT),
    (("$unwind",), UNWIND_HINT),
    (("$project", "$addfields", "projection"), PROJECT_HINT),
    (("$group", "accumulator"), GROUP_HINT),
    (("$match",), MATCH_HINT),
    (("$sort",), SORT_HINT),
)


class ErrorClassificationRepository:
    """
    Deterministic classifier from raw execution errors to repair hints.

    Stateless; the same input always yields the same hint.
    """

    def classify(self, raw_error: Optional[str], code: Optional[int] = None) -> Optional[str]:
        """
        Return the repair hint for an execution error, or None if unrecognized.

        Args:
            raw_error: Raw error message reported by the executor
            code: Server error code, when the driver reported one

        Returns:
            Hint text, or None when no rule matches
        """
        if code is not None and code in _CODE_HINTS:
            logger.debug("Execution error classified by code", code=code)
            return _CODE_HINTS[code]

        if not raw_error:
            return None

        text = raw_error.lower()
        for patterns, hint in _PATTERN_HINTS:
            if any(pattern in text for pattern in patterns):
                logger.debug("Execution error classified by message", pattern=patterns[0])
                return hint

        return None
