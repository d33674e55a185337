"""
Schema Repository for inferring a database's shape.

MongoDB has no catalog of field types, so the schema is inferred from a
handful of sampled documents per collection. Descriptions are placeholders
("Collection: <name>", "Field: <name>") that the user is expected to
refine before asking questions.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from bson import Decimal128, ObjectId

from ..config import SchemaIntrospectionConfig
from ..domain.base_enums import FieldType
from ..domain.errors import DatabaseError, SchemaIntrospectionError
from ..domain.schema import SchemaDescriptor
from ..infrastructure.database_client import DatabaseClient
from ..utils.bson_utils import looks_like_object_id
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id


logger = get_module_logger()

INTROSPECTED_DOMAIN_NOTES = "Auto-generated schema from database inspection"


def infer_field_type(value: Any) -> FieldType:
    """
    Map a sampled BSON value onto the schema type vocabulary.

    Strings that look like ObjectIds (24 hex characters) are tagged object-id.
    """
    if value is None:
        return FieldType.ANY
    if isinstance(value, (list, tuple)):
        return FieldType.ARRAY
    if isinstance(value, (datetime, date)):
        return FieldType.DATE
    # bool before number: bool is an int subclass
    if isinstance(value, bool):
        return FieldType.BOOLEAN
    if isinstance(value, (int, float, Decimal128)):
        return FieldType.NUMBER
    if isinstance(value, ObjectId):
        return FieldType.OBJECT_ID
    if isinstance(value, str):
        return FieldType.OBJECT_ID if looks_like_object_id(value) else FieldType.STRING
    if isinstance(value, dict):
        return FieldType.OBJECT
    return FieldType.ANY


def infer_collection_fields(documents: List[Dict[str, Any]]) -> Dict[str, FieldType]:
    """
    Infer field -> type tag from sampled documents.

    The first concrete type seen for a field wins; a field seen only as null stays ANY.
    Field order follows first appearance.
    """
    fields: Dict[str, FieldType] = {}
    for document in documents:
        for key, value in document.items():
            current = fields.get(key)
            if current is None or current is FieldType.ANY:
                fields[key] = infer_field_type(value)
    return fields


class SchemaRepository:
    """
    Repository for schema introspection.

    Usage:
        schema_repo = SchemaRepository(db_client, settings.schema_introspection)
        descriptor = await schema_repo.introspect("shop", "mongodb://host:27017")
    """

    def __init__(self, db_client: DatabaseClient, config: SchemaIntrospectionConfig):
        """
        Initialize schema repository.

        Args:
            db_client: DatabaseClient instance for database operations
            config: Sampling and timezone settings
        """
        self.db_client = db_client
        self.config = config
        logger.info("SchemaRepository initialized")

    async def introspect(
        self,
        database: str,
        connection_descriptor: Optional[str] = None
    ) -> SchemaDescriptor:
        """
        Build a SchemaDescriptor from sampled documents.

        Empty collections are left out: with nothing to sample there is
        nothing to describe.

        Args:
            database: Database to introspect
            connection_descriptor: MongoDB URI, or None for the shared deployment

        Returns:
            SchemaDescriptor with inferred types and placeholder descriptions

        Raises:
            SchemaIntrospectionError: If the database cannot be reached or read
        """
        trace_id = current_trace_id()

        try:
            samples = await self.db_client.sample_collections(
                database=database,
                sample_size=self.config.sample_documents_per_collection,
                connection_descriptor=connection_descriptor,
            )
        except DatabaseError as e:
            logger.error("Schema introspection failed", database=database, error=e.message, trace_id=trace_id)
            raise SchemaIntrospectionError(
                f"Failed to connect to database: {e.message}",
                details={"database": database},
            ) from e

        collections: Dict[str, Dict[str, FieldType]] = {}
        collection_descriptions: Dict[str, str] = {}
        field_descriptions: Dict[str, Dict[str, str]] = {}

        for name, documents in samples.items():
            if not documents:
                continue
            fields = infer_collection_fields(documents)
            collections[name] = fields
            collection_descriptions[name] = f"Collection: {name}"
            field_descriptions[name] = {field: f"Field: {field}" for field in fields}

        logger.info(
            "Schema introspected",
            database=database,
            collection_count=len(collections),
            skipped_empty=len(samples) - len(collections),
            trace_id=trace_id,
        )

        return SchemaDescriptor(
            database=database,
            collections=collections,
            collection_descriptions=collection_descriptions,
            field_descriptions=field_descriptions,
            domain_notes=INTROSPECTED_DOMAIN_NOTES,
            timezone=self.config.default_timezone,
            as_of=datetime.now(timezone.utc),
        )
