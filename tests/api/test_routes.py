"""
API tests for the AskDB routes.

Services are swapped through FastAPI dependency overrides. The TestClient is
not used as a context manager, so the lifespan (and its MongoDB/OpenRouter
connections) never runs.
"""

import pytest
from fastapi.testclient import TestClient

from askdb.api import dependencies
from askdb.config import get_settings
from askdb.domain.base_enums import AttemptOutcome, GenerationFailureKind, OrchestratorState
from askdb.domain.errors import PlanGenerationError, SchemaIntrospectionError
from askdb.domain.plan import QueryPlan
from askdb.domain.responses import AttemptRecord, ExecutionResult, QueryResponse
from askdb.domain.schema import SchemaDescriptor
from askdb.main import app
from askdb.utils.tracing import current_trace_id


SCHEMA = {
    "database": "sample_db",
    "schema_json": {"invoices": {"_id": "ObjectId", "amount": "number", "city": "string"}},
    "timezone": "Asia/Kolkata",
    "now_iso": "2024-05-01T10:00:00Z",
}


class FakeQueryService:

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def answer_question(self, question, schema, connection_descriptor=None):
        self.calls.append((question, schema, connection_descriptor))
        if self.error:
            raise self.error
        plan = QueryPlan(
            base_collection="invoices",
            stages=[{"$group": {"_id": "$city", "total": {"$sum": "$amount"}}}],
        )
        return QueryResponse(
            trace_id=current_trace_id() or "unknown",
            question=question,
            state=OrchestratorState.SUCCEEDED,
            plan=plan,
            result=ExecutionResult(success=True, rows=[{"_id": "Pune", "total": 10}], count=1),
            attempts=[AttemptRecord(attempt=1, outcome=AttemptOutcome.SUCCEEDED, base_collection="invoices")],
            total_time_ms=1.0,
        )


class FakeSchemaService:

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def get_sample_schema(self, database=None):
        return SchemaDescriptor(
            database=database or "sample_db",
            collections={"drivers": {"name": "string"}},
        )

    async def get_schema(self, connection_descriptor, database):
        self.calls.append((connection_descriptor, database))
        if self.error:
            raise self.error
        return self.get_sample_schema(database)


@pytest.fixture
def query_service():
    return FakeQueryService()


@pytest.fixture
def schema_service():
    return FakeSchemaService()


@pytest.fixture
def client(query_service, schema_service):
    app.dependency_overrides[dependencies.get_query_service] = lambda: query_service
    app.dependency_overrides[dependencies.get_schema_service] = lambda: schema_service
    app.dependency_overrides[dependencies.get_settings] = get_settings
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestQueryEndpoint:

    def test_success(self, client, query_service):
        response = client.post("/api/query", json={
            "question": "  revenue by city  ",
            "schema": SCHEMA,
            "connection_descriptor": "sample",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "succeeded"
        assert body["result"]["rows"] == [{"_id": "Pune", "total": 10}]
        assert body["trace_id"] == response.headers["X-Trace-ID"]

        question, schema, descriptor = query_service.calls[0]
        assert question == "revenue by city"
        assert schema.collections["invoices"]["_id"].value == "object-id"
        assert descriptor == "sample"

    def test_original_client_keys(self, client, query_service):
        response = client.post("/api/query", json={
            "query": "revenue by city",
            "schemaMetadata": SCHEMA,
            "connectionString": "mongodb://host:27017",
        })

        assert response.status_code == 200
        assert query_service.calls[0][2] == "mongodb://host:27017"

    @pytest.mark.parametrize("payload", [
        {"schema": SCHEMA},
        {"question": "   ", "schema": SCHEMA},
        {"question": "revenue by city"},
    ])
    def test_missing_fields(self, client, query_service, payload):
        response = client.post("/api/query", json=payload)

        assert response.status_code == 400
        assert response.json()["message"] == "Question and schema are required"
        assert response.json()["error"] == "bad_request"
        assert query_service.calls == []

    def test_malformed_schema(self, client):
        response = client.post("/api/query", json={
            "question": "revenue",
            "schema": {"collections": {}},
        })

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    def test_list_valued_collection_rejected(self, client, query_service):
        response = client.post("/api/query", json={
            "question": "revenue",
            "schema": {"database": "d", "collections": {"drivers": ["name"]}},
        })

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"
        assert query_service.calls == []

    def test_generation_failure(self, client, query_service):
        query_service.error = PlanGenerationError(
            GenerationFailureKind.INVALID_FORMAT,
            details={"attempts": 3},
        )

        response = client.post("/api/query", json={"question": "revenue", "schema": SCHEMA})

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "plan_generation_error"
        assert body["message"] == "invalid plan format"
        assert body["details"]["kind"] == "invalid_format"
        assert body["trace_id"] == response.headers["X-Trace-ID"]


class TestSchemaEndpoints:

    def test_sample_schema(self, client):
        response = client.get("/api/schema")

        assert response.status_code == 200
        assert response.json()["database"] == "sample_db"
        assert "drivers" in response.json()["collections"]

    def test_resolve_schema(self, client, schema_service):
        response = client.post("/api/schema", json={
            "connectionString": "mongodb://host:27017",
            "databaseName": "shop",
        })

        assert response.status_code == 200
        assert response.json()["database"] == "shop"
        assert schema_service.calls == [("mongodb://host:27017", "shop")]

    @pytest.mark.parametrize("payload", [
        {"connection_descriptor": "sample"},
        {"database": "shop"},
        {},
    ])
    def test_missing_fields(self, client, schema_service, payload):
        response = client.post("/api/schema", json=payload)

        assert response.status_code == 400
        assert response.json()["message"] == "Connection string and database name are required"
        assert schema_service.calls == []

    def test_introspection_failure(self, client, schema_service):
        schema_service.error = SchemaIntrospectionError("Failed to connect to database: timeout")

        response = client.post("/api/schema", json={"connection_descriptor": "mongodb://x", "database": "shop"})

        assert response.status_code == 500
        assert response.json()["message"] == "Failed to connect to database: timeout"


class TestSystemEndpoints:

    def test_health_without_clients(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        assert body["database_status"] == "not_configured"
        assert body["llm_service_status"] == "not_configured"

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["message"] == "AskDB API"

    def test_trace_id_header_echoed(self, client):
        response = client.get("/health", headers={"X-Trace-ID": "trace-abc"})

        assert response.headers["X-Trace-ID"] == "trace-abc"
        assert "X-Process-Time" in response.headers

    def test_security_headers(self, client):
        response = client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
