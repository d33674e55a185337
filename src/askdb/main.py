"""
Main FastAPI application for AskDB.

Wires the shared infrastructure clients into the application lifespan and
exposes the question, schema and health endpoints. Everything below the
route handlers lives in services and repositories (see api/dependencies.py).
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Union

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .utils.logging import configure_logging, get_module_logger
from .utils.tracing import get_trace_id
from .domain.errors import BadRequestError, DatabaseConnectionError, LLMError
from .domain.schema import SchemaDescriptor
from .domain.responses import HealthResponse, QueryResponse
from .domain.requests import QueryRequest, SchemaRequest
from .api.middleware import (
    trace_id_middleware,
    security_headers_middleware,
    logging_middleware,
    register_exception_handlers,
    ERROR_RESPONSES,
)
from .api.dependencies import (
    SettingsDep,
    SchemaServiceDep,
    QueryServiceDep,
    OptionalDatabaseClientDep,
    OptionalLLMClientDep,
)
from .config import get_settings
from .infrastructure.database_client import DatabaseClient
from .infrastructure.llm_client import LLMClient


API_VERSION = "0.1.0"

# Configure logging on module import
configure_logging()
logger = get_module_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create the shared clients on startup and close them on shutdown.

    Connection failures are logged, not fatal: requests that carry their own
    connection string still work without the shared pool, and /health
    reports what is missing.
    """
    settings = get_settings()
    app.state.settings = settings
    logger.info("Starting AskDB API server", version=API_VERSION, model=settings.llm.default_model)

    db_client = DatabaseClient(settings.database)
    try:
        await db_client.connect()
    except DatabaseConnectionError as e:
        logger.error("Shared MongoDB pool unavailable", error=e.message)

    llm_client = LLMClient(settings.llm)
    try:
        await llm_client.connect()
    except LLMError as e:
        logger.error("LLM client unavailable", error=e.message)

    app.state.db_client = db_client
    app.state.llm_client = llm_client

    yield

    logger.info("Shutting down AskDB API server")
    await db_client.close()
    await llm_client.close()


app = FastAPI(
    title="AskDB API",
    description="Natural language questions answered with read-only MongoDB aggregation pipelines",
    version=API_VERSION,
    lifespan=lifespan
)

# Browser clients call the API directly
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last registered runs first: trace id is bound before anything logs
app.middleware("http")(security_headers_middleware)
app.middleware("http")(logging_middleware)
app.middleware("http")(trace_id_middleware)

register_exception_handlers(app)


# -------------------------
# Service Endpoints
# -------------------------

@app.get("/", tags=["Root"])
async def root(settings: SettingsDep) -> Dict[str, Union[str, int, None]]:
    """Service name, version, the request's trace id and the retry budget."""
    trace_id = get_trace_id()
    logger.debug("Root endpoint accessed", trace_id=trace_id)

    return {
        "message": "AskDB API",
        "version": API_VERSION,
        "trace_id": trace_id,
        "log_level": settings.app.log_level.value,
        "max_retries": settings.query.max_retries,
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health(
    db_client: OptionalDatabaseClientDep,
    llm_client: OptionalLLMClientDep,
) -> HealthResponse:
    """
    Report the shared MongoDB pool and LLM client status.

    "degraded" means at least one of them is down or was never created;
    the endpoint itself always answers 200.
    """
    trace_id = get_trace_id()

    database_status = "not_configured"
    if db_client is not None:
        database_status = (await db_client.health_check()).get("status", "unknown")

    llm_status = "not_configured"
    if llm_client is not None:
        llm_status = "healthy" if llm_client.is_connected() else "unhealthy"

    status = "healthy" if database_status == llm_status == "healthy" else "degraded"
    logger.info(
        "Health check",
        status=status,
        database_status=database_status,
        llm_status=llm_status,
        trace_id=trace_id,
    )

    return HealthResponse(
        status=status,
        timestamp=datetime.now(timezone.utc),
        version=API_VERSION,
        database_status=database_status,
        llm_service_status=llm_status
    )


# -------------------------
# Schema Endpoints
# -------------------------

@app.get("/api/schema", response_model=SchemaDescriptor, tags=["Schema"])
async def sample_schema(schema_service: SchemaServiceDep) -> SchemaDescriptor:
    """
    Return the built-in sample schema (drivers, cities, invoices).

    **Response Model**: `SchemaDescriptor`
    """
    trace_id = get_trace_id()
    logger.info("Sample schema requested", trace_id=trace_id)

    return schema_service.get_sample_schema()


@app.post(
    "/api/schema",
    response_model=SchemaDescriptor,
    tags=["Schema"],
    responses={
        **{k: v for k, v in ERROR_RESPONSES.items() if k in [400, 422, 500]},
    },
)
async def resolve_schema(
    request: SchemaRequest,
    schema_service: SchemaServiceDep,
) -> SchemaDescriptor:
    """
    Describe a database by sampling its collections.

    **Request Model**: `SchemaRequest`
    - connection_descriptor: MongoDB connection string, or "sample" (required)
    - database: Database name (required)

    **Response Model**: `SchemaDescriptor`
    - collections: collection -> field -> type tag, inferred from up to 5 documents
    - collection_descriptions, field_descriptions: placeholders to refine
    - domain_notes, timezone, as_of

    Empty collections are not listed.

    **Possible Errors**:
    - 400: Connection string or database name missing
    - 500: Database unreachable or introspection failed
    """
    trace_id = get_trace_id()

    if not request.connection_descriptor or not request.database:
        raise BadRequestError(
            "Connection string and database name are required",
            details={"required": ["connection_descriptor", "database"]},
        )

    logger.info("Schema requested", database=request.database, trace_id=trace_id)

    descriptor = await schema_service.get_schema(
        connection_descriptor=request.connection_descriptor,
        database=request.database,
    )

    logger.info(
        "Schema resolved",
        database=descriptor.database,
        collection_count=len(descriptor.collections),
        trace_id=trace_id,
    )

    return descriptor


# -------------------------
# Query Endpoint
# -------------------------

@app.post(
    "/api/query",
    response_model=QueryResponse,
    tags=["Query"],
    responses={
        **{k: v for k, v in ERROR_RESPONSES.items() if k in [400, 422, 500, 503]},
    },
)
async def query(
    request: QueryRequest,
    query_service: QueryServiceDep,
) -> QueryResponse:
    """
    Answer a natural language question with a MongoDB aggregation.

    1. **Generation**: LLM turns question + schema into a read-only plan
    2. **Execution**: Plan runs against the base collection, row-capped
    3. **Repair**: Failed executions are classified and fed back, up to
       QUERY__MAX_RETRIES more attempts
    4. **Charts**: Default chart hints when the plan carries none

    **Request Model**: `QueryRequest`
    - question: Natural language question (required)
    - schema: SchemaDescriptor from /api/schema (required)
    - connection_descriptor: MongoDB connection string or "sample" (optional)

    **Response Model**: `QueryResponse`
    - plan: final QueryPlan
    - result: ExecutionResult (success may be false after the last attempt)
    - chart_suggestions, attempts, total_time_ms

    **Possible Errors**:
    - 400: Question or schema missing
    - 422: Malformed schema descriptor
    - 500: No usable plan could be generated on the final attempt
    """
    trace_id = get_trace_id()

    if not request.question or not request.question.strip() or request.schema_descriptor is None:
        raise BadRequestError(
            "Question and schema are required",
            details={"required": ["question", "schema"]},
        )

    logger.info(
        "Query requested",
        question_length=len(request.question),
        database=request.schema_descriptor.database,
        trace_id=trace_id,
    )

    response = await query_service.answer_question(
        question=request.question.strip(),
        schema=request.schema_descriptor,
        connection_descriptor=request.connection_descriptor,
    )

    logger.info(
        "Query completed",
        state=response.state.value,
        success=response.result.success,
        rows_returned=response.result.count,
        attempts=len(response.attempts),
        trace_id=trace_id,
    )

    return response


# FastAPI app is now ready to be imported and run by uvicorn or other ASGI servers
# Use scripts/run_dev.py for development
