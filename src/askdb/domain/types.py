"""
Type aliases for AskDB.

Provides reusable, descriptive type aliases for common patterns
to improve code readability and type safety.
"""

from typing import Any, Dict, List

from .base_enums import FieldType


# Schema shape: {collection_name: {field_name: FieldType}}
CollectionFieldsMap = Dict[str, Dict[str, FieldType]]

# Field descriptions: {collection_name: {field_name: description}}
FieldDescriptionsMap = Dict[str, Dict[str, str]]

# One aggregation stage: {"$operator": arguments}
PipelineStage = Dict[str, Any]

# Ordered aggregation pipeline
Pipeline = List[PipelineStage]

# Result document as returned to the API caller
ResultRow = Dict[str, Any]
