"""
Schema Service for orchestrating schema operations.

This service decides where a SchemaDescriptor comes from: the built-in
sample schema for the sample connection descriptor, or live introspection
for anything else.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..config import SchemaIntrospectionConfig
from ..domain.schema import SchemaDescriptor
from ..repositories.schema_repository import SchemaRepository
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id
from ..utils.yaml_loader import load_resource_yaml


logger = get_module_logger()

SAMPLE_SCHEMA_FILE = "sample_schema.yaml"


class SchemaService:
    """
    Service for schema-related business logic.

    Usage:
        schema_service = SchemaService(schema_repo, settings.schema_introspection, "sample")
        descriptor = await schema_service.get_schema("sample", "demo")
    """

    def __init__(
        self,
        schema_repository: SchemaRepository,
        config: SchemaIntrospectionConfig,
        sample_connection_descriptor: str
    ):
        """
        Initialize schema service.

        Args:
            schema_repository: SchemaRepository instance for introspection
            config: Introspection settings (timezone, sample database name)
            sample_connection_descriptor: Descriptor value that selects the sample schema
        """
        self.schema_repo = schema_repository
        self.config = config
        self.sample_connection_descriptor = sample_connection_descriptor

        # Parsed sample_schema.yaml, loaded on first use
        self._sample_content: Optional[Dict[str, Any]] = None

        logger.info("SchemaService initialized")

    def _load_sample_content(self) -> Dict[str, Any]:
        if self._sample_content is None:
            self._sample_content = load_resource_yaml(SAMPLE_SCHEMA_FILE)
            logger.info(
                "Sample schema loaded",
                collection_count=len(self._sample_content.get("collections", {})),
            )
        return self._sample_content

    def get_sample_schema(self, database: Optional[str] = None) -> SchemaDescriptor:
        """
        Return the built-in sample schema.

        Args:
            database: Database name to report; defaults to the configured sample database

        Returns:
            SchemaDescriptor stamped with the current time
        """
        content = self._load_sample_content()
        return SchemaDescriptor(
            database=database or self.config.sample_database_name,
            collections=content.get("collections", {}),
            collection_descriptions=content.get("collection_descriptions", {}),
            field_descriptions=content.get("field_descriptions", {}),
            domain_notes=content.get("domain_notes"),
            timezone=self.config.default_timezone,
            as_of=datetime.now(timezone.utc),
        )

    async def get_schema(self, connection_descriptor: str, database: str) -> SchemaDescriptor:
        """
        Resolve the schema for a connection.

        Args:
            connection_descriptor: MongoDB URI, or the sample sentinel
            database: Database name

        Returns:
            Sample or introspected SchemaDescriptor

        Raises:
            SchemaIntrospectionError: If live introspection fails
        """
        trace_id = current_trace_id()

        if connection_descriptor == self.sample_connection_descriptor:
            logger.info("Serving sample schema", database=database, trace_id=trace_id)
            return self.get_sample_schema(database)

        logger.info("Introspecting live schema", database=database, trace_id=trace_id)
        return await self.schema_repo.introspect(database, connection_descriptor)
