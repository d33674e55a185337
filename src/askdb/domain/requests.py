"""
API request models for AskDB.

These models define the structure for all incoming API requests. Required
inputs are declared Optional on purpose: a missing question, schema or
connection field is answered with 400 Bad Request by the route, not with a
framework 422, so older clients get the error shape they expect.

Both snake_case names and the original client keys are accepted
(`query`, `schemaMetadata`, `connectionString`).
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .schema import SchemaDescriptor


class QueryRequest(BaseModel):
    """Request model for natural language question answering."""

    model_config = ConfigDict(populate_by_name=True)

    question: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("question", "query"),
        description="Natural language question. "
                    "Example: 'top 5 drivers by revenue'",
        json_schema_extra={"example": "top 5 drivers by revenue"},
    )
    schema_descriptor: Optional[SchemaDescriptor] = Field(
        default=None,
        validation_alias=AliasChoices("schema", "schema_descriptor", "schema_metadata", "schemaMetadata"),
        description="Schema descriptor returned by /api/schema (possibly edited by the client)",
    )
    connection_descriptor: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("connection_descriptor", "connection_string", "connectionString"),
        description="MongoDB connection string for this request, or 'sample' for the demo data. "
                    "If omitted, the server's shared connection is used.",
    )


class SchemaRequest(BaseModel):
    """Request model for live schema introspection."""

    model_config = ConfigDict(populate_by_name=True)

    connection_descriptor: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("connection_descriptor", "connection_string", "connectionString"),
        description="MongoDB connection string to introspect, or 'sample' for the built-in schema",
    )
    database: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("database", "database_name", "databaseName"),
        description="Database to introspect",
    )
