"""
Schema descriptor for a MongoDB database.

The descriptor is the only view of the database the generator gets: field type
tags, human descriptions and business notes. It is built once per connection
(live introspection or the built-in sample) and never mutated by the core.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .base_enums import FieldType
from .types import CollectionFieldsMap, FieldDescriptionsMap

# Spellings seen in hand-written schemas and older clients
_FIELD_TYPE_ALIASES: Dict[str, FieldType] = {
    "objectid": FieldType.OBJECT_ID,
    "object_id": FieldType.OBJECT_ID,
    "oid": FieldType.OBJECT_ID,
    "datetime": FieldType.DATE,
    "timestamp": FieldType.DATE,
    "int": FieldType.NUMBER,
    "integer": FieldType.NUMBER,
    "float": FieldType.NUMBER,
    "double": FieldType.NUMBER,
    "decimal": FieldType.NUMBER,
    "bool": FieldType.BOOLEAN,
    "str": FieldType.STRING,
    "list": FieldType.ARRAY,
    "dict": FieldType.OBJECT,
}


def normalize_field_type(value: Any) -> FieldType:
    """Map a free-form type tag onto the fixed vocabulary; unknown tags become ANY."""
    if isinstance(value, FieldType):
        return value
    if not isinstance(value, str):
        return FieldType.ANY

    tag = value.strip().lower()
    try:
        return FieldType(tag)
    except ValueError:
        return _FIELD_TYPE_ALIASES.get(tag, FieldType.ANY)


class SchemaDescriptor(BaseModel):
    """
    Canonical in-memory description of a database's shape.

    Accepts both the snake_case field names and the keys used by the original
    request payload (`schema_json`, `now_iso`).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    database: str = Field(..., min_length=1, description="Target logical database name")
    collections: CollectionFieldsMap = Field(
        default_factory=dict,
        validation_alias=AliasChoices("collections", "schema_json"),
        description="collection -> field -> type tag",
    )
    collection_descriptions: Dict[str, str] = Field(
        default_factory=dict,
        description="collection -> free-text description",
    )
    field_descriptions: FieldDescriptionsMap = Field(
        default_factory=dict,
        description="collection -> field -> free-text description",
    )
    domain_notes: Optional[str] = Field(
        default=None,
        description="Business-logic hints (derived metrics, join keys)",
    )
    timezone: str = Field(default="UTC", description="Timezone used to interpret relative dates")
    as_of: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        validation_alias=AliasChoices("as_of", "now_iso"),
        description="Current instant injected into generation",
    )

    @field_validator("collections", mode="before")
    @classmethod
    def _normalize_collections(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        # Non-mapping field sets are left for the type annotation to reject
        return {
            collection: {
                field: normalize_field_type(tag)
                for field, tag in fields.items()
            } if isinstance(fields, dict) else ({} if fields is None else fields)
            for collection, fields in value.items()
        }

    @field_validator("collection_descriptions", "field_descriptions", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    def has_collection(self, name: str) -> bool:
        return name in self.collections

    def collection_description(self, name: str) -> Optional[str]:
        return self.collection_descriptions.get(name) or None

    def field_description(self, collection: str, field: str) -> Optional[str]:
        return self.field_descriptions.get(collection, {}).get(field) or None
