"""
Unit tests for the infrastructure clients.

No network: DatabaseClient gets a fake AsyncMongoClient through
_create_client, and LLMClient is only exercised up to its input checks.
"""

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from askdb.config import DatabaseConfig, LLMConfig
from askdb.domain.errors import DatabaseConnectionError, DatabaseQueryError, LLMError
from askdb.infrastructure.database_client import DatabaseClient
from askdb.infrastructure.llm_client import LLMClient


class FakeCursor:

    def __init__(self, documents):
        self.documents = documents
        self.limit_value = None
        self.max_time = None

    def limit(self, value):
        self.limit_value = value
        return self

    def max_time_ms(self, value):
        self.max_time = value
        return self

    async def to_list(self, length=None):
        return list(self.documents)


class FakeCollection:

    def __init__(self, documents, error=None):
        self.documents = documents
        self.error = error
        self.aggregate_kwargs = None

    async def aggregate(self, pipeline, **kwargs):
        if self.error:
            raise self.error
        self.aggregate_kwargs = kwargs
        return FakeCursor(self.documents)

    def find(self, filter):
        return FakeCursor(self.documents)


class FakeDatabase:

    def __init__(self, collections):
        self.collections = collections

    def __getitem__(self, name):
        return self.collections[name]

    async def list_collection_names(self):
        return list(self.collections)


class FakeMongoClient:

    def __init__(self, database):
        self.database = database
        self.closed = False

    def __getitem__(self, name):
        return self.database

    async def close(self):
        self.closed = True


@pytest.fixture
def db_config():
    return DatabaseConfig(mongodb_uri="mongodb://localhost:27017")


def patch_client(monkeypatch, db_client, fake):
    created = []

    def create(uri):
        created.append(uri)
        return fake

    monkeypatch.setattr(db_client, "_create_client", create)
    return created


class TestDatabaseClient:

    def test_shared_descriptor(self, db_config):
        client = DatabaseClient(db_config)

        assert client.is_shared_descriptor(None)
        assert client.is_shared_descriptor("")
        assert client.is_shared_descriptor("sample")
        assert not client.is_shared_descriptor("mongodb://host:27017")

    @pytest.mark.asyncio
    async def test_shared_pool_requires_connection(self, db_config):
        client = DatabaseClient(db_config)

        with pytest.raises(DatabaseConnectionError):
            await client.aggregate("sample_db", "invoices", [])

    @pytest.mark.asyncio
    async def test_adhoc_client_closed_after_aggregate(self, monkeypatch, db_config):
        collection = FakeCollection([{"n": 1}])
        fake = FakeMongoClient(FakeDatabase({"orders": collection}))
        client = DatabaseClient(db_config)
        created = patch_client(monkeypatch, client, fake)

        rows = await client.aggregate("shop", "orders", [{"$limit": 1}], max_time_ms=500,
                                      connection_descriptor="mongodb://other:27017")

        assert rows == [{"n": 1}]
        assert created == ["mongodb://other:27017"]
        assert collection.aggregate_kwargs == {"maxTimeMS": 500}
        assert fake.closed

    @pytest.mark.asyncio
    async def test_adhoc_client_closed_on_error(self, monkeypatch, db_config):
        error = OperationFailure("First argument to $slice must be an array", code=28724)
        fake = FakeMongoClient(FakeDatabase({"orders": FakeCollection([], error=error)}))
        client = DatabaseClient(db_config)
        patch_client(monkeypatch, client, fake)

        with pytest.raises(DatabaseQueryError) as exc_info:
            await client.aggregate("shop", "orders", [], connection_descriptor="mongodb://other:27017")

        assert exc_info.value.code == 28724
        assert exc_info.value.raw_message == "First argument to $slice must be an array"
        assert fake.closed

    @pytest.mark.asyncio
    async def test_connection_failure_wrapped(self, monkeypatch, db_config):
        error = ServerSelectionTimeoutError("No servers found")
        fake = FakeMongoClient(FakeDatabase({"orders": FakeCollection([], error=error)}))
        client = DatabaseClient(db_config)
        patch_client(monkeypatch, client, fake)

        with pytest.raises(DatabaseConnectionError):
            await client.aggregate("shop", "orders", [], connection_descriptor="mongodb://other:27017")

    @pytest.mark.asyncio
    async def test_sample_collections_skips_system(self, monkeypatch, db_config):
        database = FakeDatabase({
            "users": FakeCollection([{"name": "a"}]),
            "system.views": FakeCollection([{"x": 1}]),
            "orders": FakeCollection([]),
        })
        fake = FakeMongoClient(database)
        client = DatabaseClient(db_config)
        patch_client(monkeypatch, client, fake)

        samples = await client.sample_collections("shop", 5, connection_descriptor="mongodb://other:27017")

        assert list(samples) == ["orders", "users"]
        assert samples["users"] == [{"name": "a"}]
        assert fake.closed

    @pytest.mark.asyncio
    async def test_health_check_not_connected(self, db_config):
        health = await DatabaseClient(db_config).health_check()

        assert health["status"] == "unhealthy"
        assert health["connected"] is False


class TestLLMClient:

    @pytest.mark.asyncio
    async def test_generate_requires_connection(self):
        client = LLMClient(LLMConfig(openrouter_api_key="test-key"))

        with pytest.raises(LLMError, match="not connected"):
            await client.generate("hello")

    @pytest.mark.asyncio
    async def test_input_limit_enforced(self):
        client = LLMClient(LLMConfig(openrouter_api_key="test-key", max_input_chars=10))
        await client.connect()

        with pytest.raises(LLMError, match="Total input too large"):
            await client.generate("a question that is too long", system_prompt="JSON")

        await client.close()
        assert not client.is_connected()
