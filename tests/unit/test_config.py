import pytest
from askdb.config import get_settings, QueryConfig, Settings
from askdb.config_constants import LogLevel, SAMPLE_CONNECTION_DESCRIPTOR


## test for import and loading settings
def test_get_settings():
    settings = get_settings()
    assert settings is not None
    assert settings.database.mongodb_uri
    assert settings.llm.temperature >= 0.0
    assert settings.app.log_level in LogLevel


## test for singleton
def test_get_settings_singleton():
    settings1 = get_settings()
    settings2 = get_settings()
    assert settings1 is settings2


def test_query_defaults():
    config = QueryConfig()
    assert config.max_retries == 2
    assert config.aggregation_row_cap == 200
    assert config.find_row_cap == 100
    assert config.enforce_read_only is True


def test_sample_descriptor_default():
    settings = get_settings()
    assert settings.database.sample_connection_descriptor == SAMPLE_CONNECTION_DESCRIPTOR


def test_nested_env_override(monkeypatch):
    monkeypatch.setenv("QUERY__MAX_RETRIES", "5")
    monkeypatch.setenv("SCHEMA_INTROSPECTION__DEFAULT_TIMEZONE", "UTC")

    settings = Settings()  # type: ignore[call-arg]

    assert settings.query.max_retries == 5
    assert settings.schema_introspection.default_timezone == "UTC"


def test_missing_required_settings(monkeypatch):
    monkeypatch.delenv("LLM__OPENROUTER_API_KEY", raising=False)

    with pytest.raises(Exception):
        Settings(_env_file=None)  # type: ignore[call-arg]
