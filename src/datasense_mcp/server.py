"""FastMCP server implementation for datasense-mcp."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import dotenv
from fastmcp import FastMCP
from fastmcp.utilities.logging import get_logger
from starlette.requests import Request
from starlette.responses import JSONResponse

from datasense_mcp.generation.mcp_tools import register_generation_tools
from datasense_mcp.interpretation.mcp_tools import register_interpretation_tools
from datasense_mcp.schema.mcp_tools import build_schema_status, register_schema_tools
from datasense_mcp.services.config_service import ConfigService
from datasense_mcp.services.schema_cache import SchemaCache
from datasense_mcp.services.service_registry import ServiceRegistry

# Load environment variables
dotenv.load_dotenv()

# Configure a module-level logger for local server logs.
_logger = get_logger(__name__)

SHUTDOWN_GRACE_SECONDS = 30.0


# -- Lifespan: schema refresh and job consumer ---------------------------
@asynccontextmanager
async def lifespan(_mcp_instance: FastMCP) -> AsyncGenerator[None]:
    """Start the startup schema refresh and the job consumer; drain both on exit."""
    cache = SchemaCache.get_instance()
    registry = ServiceRegistry.get_instance()
    try:
        _logger.info("Starting background schema refresh during lifespan startup")
        cache.start_background_refresh()
        await registry.start_consumer()
        yield
    finally:
        _logger.info("Shutting down job consumer and schema cache")
        grace = min(SHUTDOWN_GRACE_SECONDS, ConfigService.get_consumer_config().job_timeout)
        await registry.aclose(grace)
        await cache.shutdown()


# Create the main MCP server instance with lifespan
mcp = FastMCP(
    instructions=(
        "This provides a natural language to SQL Model Context Protocol server. "
        "Use generate_sql to turn a question into a safe read-only SELECT statement, "
        "and interpret_results to explain the rows the query returned."
    ),
    lifespan=lifespan,
)

# -- Tool Registration -------------------------------------------------------
register_schema_tools(mcp)
register_generation_tools(mcp)
register_interpretation_tools(mcp)


# -- Health Check ----------------------------------------------------------
@mcp.custom_route("/health", methods=["GET"])
async def health_check(_request: Request) -> JSONResponse:
    status = build_schema_status(SchemaCache.get_instance())
    return JSONResponse(
        {
            "status": "healthy",
            "service": "datasense-mcp",
            "schema_phase": status.phase,
            "schema_tables": status.table_count,
        }
    )
