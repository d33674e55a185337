"""
FastAPI dependencies for AskDB.

Route handlers depend on services only. Services and repositories are cheap
and stateless, so a fresh tree is built per request around the shared,
lifespan-owned clients stored on app.state:

    QueryService
      ├── PlanGenerationRepository  -> LLMClient
      ├── PlanExecutionRepository   -> DatabaseClient
      ├── ErrorClassificationRepository
      └── ChartSuggestionRepository

    SchemaService
      └── SchemaRepository          -> DatabaseClient

Tests replace get_query_service / get_schema_service through
app.dependency_overrides.
"""

from typing import Annotated, Any

from fastapi import Depends, Request

from ..infrastructure.database_client import DatabaseClient
from ..infrastructure.llm_client import LLMClient
from ..repositories.chart_suggestion import ChartSuggestionRepository
from ..repositories.error_classification import ErrorClassificationRepository
from ..repositories.plan_execution import PlanExecutionRepository
from ..repositories.plan_generation import PlanGenerationRepository
from ..repositories.schema_repository import SchemaRepository
from ..services.query_service import QueryService
from ..services.schema_service import SchemaService
from ..config import Settings


def _require_state(request: Request, name: str) -> Any:
    """Fetch an app.state attribute set by the lifespan, failing loudly if it is missing."""
    if not hasattr(request.app.state, name):
        raise RuntimeError(f"{name} not initialized; is the application lifespan running?")
    return getattr(request.app.state, name)


def get_settings(request: Request) -> Settings:
    """Settings loaded once by the lifespan."""
    return _require_state(request, "settings")


def get_db_client_optional(request: Request) -> DatabaseClient | None:
    """Shared database client, or None when the lifespan has not created one (health checks only)."""
    return getattr(request.app.state, "db_client", None)


def get_llm_client_optional(request: Request) -> LLMClient | None:
    """LLM client, or None when the lifespan has not created one (health checks only)."""
    return getattr(request.app.state, "llm_client", None)


def get_schema_service(request: Request) -> SchemaService:
    """SchemaService over the shared database client."""
    settings: Settings = _require_state(request, "settings")
    db_client: DatabaseClient = _require_state(request, "db_client")

    return SchemaService(
        schema_repository=SchemaRepository(db_client, settings.schema_introspection),
        config=settings.schema_introspection,
        sample_connection_descriptor=settings.database.sample_connection_descriptor,
    )


def get_query_service(request: Request) -> QueryService:
    """QueryService with its full repository tree."""
    settings: Settings = _require_state(request, "settings")
    db_client: DatabaseClient = _require_state(request, "db_client")
    llm_client: LLMClient = _require_state(request, "llm_client")

    return QueryService(
        plan_generation_repository=PlanGenerationRepository(
            llm_client=llm_client,
            config=settings.llm,
            default_result_limit=settings.query.default_result_limit,
        ),
        plan_execution_repository=PlanExecutionRepository(db_client=db_client, config=settings.query),
        error_classification_repository=ErrorClassificationRepository(),
        chart_suggestion_repository=ChartSuggestionRepository(),
        config=settings.query,
    )


# Service dependencies (used in API routes)
SchemaServiceDep = Annotated[SchemaService, Depends(get_schema_service)]
QueryServiceDep = Annotated[QueryService, Depends(get_query_service)]
SettingsDep = Annotated[Settings, Depends(get_settings)]

# Optional client dependencies (used in health checks)
OptionalDatabaseClientDep = Annotated[DatabaseClient | None, Depends(get_db_client_optional)]
OptionalLLMClientDep = Annotated[LLMClient | None, Depends(get_llm_client_optional)]
