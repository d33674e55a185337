"""
Unit tests for schema inference and schema resolution.

Covers:
- infer_field_type / infer_collection_fields
- SchemaRepository.introspect against a fake DatabaseClient
- SchemaService sample-versus-live routing
"""

from datetime import date, datetime, timezone

import pytest
from bson import Decimal128, ObjectId

from askdb.config import SchemaIntrospectionConfig
from askdb.domain.base_enums import FieldType
from askdb.domain.errors import DatabaseConnectionError, SchemaIntrospectionError
from askdb.repositories.schema_repository import (
    INTROSPECTED_DOMAIN_NOTES,
    SchemaRepository,
    infer_collection_fields,
    infer_field_type,
)
from askdb.services.schema_service import SchemaService


class FakeDatabaseClient:

    def __init__(self, samples=None, error=None):
        self.samples = samples or {}
        self.error = error
        self.calls = []

    async def sample_collections(self, database, sample_size, connection_descriptor=None):
        self.calls.append((database, sample_size, connection_descriptor))
        if self.error:
            raise self.error
        return self.samples


@pytest.fixture
def config():
    return SchemaIntrospectionConfig(sample_documents_per_collection=3, default_timezone="UTC")


class TestInferFieldType:

    @pytest.mark.parametrize("value, expected", [
        (None, FieldType.ANY),
        ([1, 2], FieldType.ARRAY),
        (datetime(2024, 1, 1, tzinfo=timezone.utc), FieldType.DATE),
        (date(2024, 1, 1), FieldType.DATE),
        (True, FieldType.BOOLEAN),
        (3, FieldType.NUMBER),
        (2.5, FieldType.NUMBER),
        (Decimal128("1.10"), FieldType.NUMBER),
        (ObjectId(), FieldType.OBJECT_ID),
        ("64b7f0c2a1b2c3d4e5f60718", FieldType.OBJECT_ID),
        ("Pune", FieldType.STRING),
        ({"lat": 1}, FieldType.OBJECT),
        (b"raw", FieldType.ANY),
    ])
    def test_values(self, value, expected):
        assert infer_field_type(value) is expected

    def test_collection_fields_first_concrete_type_wins(self):
        documents = [
            {"_id": ObjectId(), "score": None, "name": "A"},
            {"_id": ObjectId(), "score": 4, "name": 7, "extra": True},
        ]

        fields = infer_collection_fields(documents)

        assert fields == {
            "_id": FieldType.OBJECT_ID,
            "score": FieldType.NUMBER,
            "name": FieldType.STRING,
            "extra": FieldType.BOOLEAN,
        }
        assert list(fields) == ["_id", "score", "name", "extra"]

    def test_null_only_field_stays_any(self):
        assert infer_collection_fields([{"x": None}, {"x": None}]) == {"x": FieldType.ANY}


class TestSchemaRepository:

    @pytest.mark.asyncio
    async def test_introspect(self, config):
        db = FakeDatabaseClient(samples={
            "drivers": [{"_id": ObjectId(), "name": "Asha", "joined": datetime(2023, 1, 1)}],
            "empty": [],
        })
        repo = SchemaRepository(db, config)  # type: ignore[arg-type]

        schema = await repo.introspect("shop", "mongodb://host:27017")

        assert db.calls == [("shop", 3, "mongodb://host:27017")]
        assert schema.database == "shop"
        assert list(schema.collections) == ["drivers"]
        assert schema.collections["drivers"]["joined"] is FieldType.DATE
        assert schema.collection_description("drivers") == "Collection: drivers"
        assert schema.field_description("drivers", "name") == "Field: name"
        assert schema.domain_notes == INTROSPECTED_DOMAIN_NOTES
        assert schema.timezone == "UTC"

    @pytest.mark.asyncio
    async def test_database_error_wrapped(self, config):
        db = FakeDatabaseClient(error=DatabaseConnectionError("Invalid MongoDB connection string: bad"))
        repo = SchemaRepository(db, config)  # type: ignore[arg-type]

        with pytest.raises(SchemaIntrospectionError) as exc_info:
            await repo.introspect("shop", "not-a-uri")

        assert exc_info.value.message.startswith("Failed to connect to database:")
        assert exc_info.value.details == {"database": "shop"}


class TestSchemaService:

    def make_service(self, config, db=None):
        repo = SchemaRepository(db or FakeDatabaseClient(), config)  # type: ignore[arg-type]
        return SchemaService(repo, config, "sample")

    def test_sample_schema(self, config):
        schema = self.make_service(config).get_sample_schema()

        assert schema.database == config.sample_database_name
        assert set(schema.collections) == {"drivers", "cities", "invoices"}
        assert schema.collections["invoices"]["driver_id"] is FieldType.OBJECT_ID
        assert schema.collections["invoices"]["created_at"] is FieldType.DATE
        assert schema.domain_notes
        assert schema.timezone == "UTC"

    def test_sample_schema_database_override(self, config):
        assert self.make_service(config).get_sample_schema("demo").database == "demo"

    @pytest.mark.asyncio
    async def test_sentinel_serves_sample(self, config):
        db = FakeDatabaseClient()
        service = self.make_service(config, db)

        schema = await service.get_schema("sample", "demo")

        assert schema.database == "demo"
        assert "drivers" in schema.collections
        assert db.calls == []

    @pytest.mark.asyncio
    async def test_other_descriptor_introspects(self, config):
        db = FakeDatabaseClient(samples={"orders": [{"total": 10}]})
        service = self.make_service(config, db)

        schema = await service.get_schema("mongodb://host:27017", "shop")

        assert schema.collections == {"orders": {"total": FieldType.NUMBER}}
        assert db.calls == [("shop", 3, "mongodb://host:27017")]
