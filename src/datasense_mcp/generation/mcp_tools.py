"""MCP tool registration for SQL generation.

Exposes `generate_sql` and `needs_query_execution`. Typed failures are
reported in the result payload (`is_valid=False` plus the error class name)
rather than raised, so the calling agent can decide whether to rephrase,
retry or give up.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from fastmcp import Context, FastMCP
from fastmcp.utilities.logging import get_logger
from pydantic import Field

from datasense_mcp.exceptions import (
    GenerationFailedError,
    OperationTimeoutError,
    UnsafeGeneratedQueryError,
)
from datasense_mcp.safety.models import Dialect
from datasense_mcp.schema.models import SchemaSnapshot
from datasense_mcp.services.service_registry import ServiceRegistry

from .models import GenerateSqlResult, GenerationRequest, QueryNeedResult

_logger = get_logger(__name__)
MAX_QUERY_DISPLAY = 100


def _preview(text: str) -> str:
    return text[:MAX_QUERY_DISPLAY] + ("..." if len(text) > MAX_QUERY_DISPLAY else "")


def register_generation_tools(mcp: FastMCP, registry: ServiceRegistry | None = None) -> None:
    """Register natural-language-to-SQL tools."""

    def _registry() -> ServiceRegistry:
        return registry or ServiceRegistry.get_instance()

    @mcp.tool
    async def generate_sql(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        question: Annotated[
            str, Field(min_length=1, description="The user's question in natural language")
        ],
        dialect: Annotated[
            Dialect | None,
            Field(
                description=(
                    "Target SQL dialect. Defaults to the dialect of the configured database "
                    "(T-SQL when none is configured)."
                )
            ),
        ] = None,
        schema: Annotated[
            SchemaSnapshot | None,
            Field(
                description=(
                    "Optional schema to generate against. When omitted the cached snapshot of "
                    "the configured database is used."
                )
            ),
        ] = None,
    ) -> GenerateSqlResult:
        """Generate a single read-only SELECT statement for a natural-language question.

        The SQL is sanitized and checked against a read-only allow-list before it is returned.
        When is_valid is false, error_type tells you why: GenerationFailedError (model failure,
        rephrase or retry), UnsafeGeneratedQueryError (rejected by the safety gate, rephrase),
        OperationTimeoutError (retry later).
        """
        _logger.info("generate_sql: %s", _preview(question))
        reg = _registry()
        req = GenerationRequest(
            natural_language_text=question,
            schema_snapshot=schema,
            dialect=dialect,
        )
        snapshot = reg.generation.resolve_schema(req)
        if schema is not None:
            schema_source = "request"
        elif reg.schema_cache.current() is not None:
            schema_source = "cache"
        else:
            schema_source = "empty"
        metadata: dict[str, object] = {
            "dialect": reg.generation.resolve_dialect(req),
            "tables_count": len(snapshot.tables),
            "schema_source": schema_source,
            "generated_at": datetime.now(UTC).isoformat(),
        }
        if schema_source == "empty":
            await ctx.warning("No schema snapshot available; generating without schema context")

        try:
            sql = await reg.generation.generate_sql(
                req.model_copy(update={"schema_snapshot": snapshot})
            )
        except UnsafeGeneratedQueryError as exc:
            await ctx.warning(f"Generated SQL rejected: {exc.reason}")
            return GenerateSqlResult(
                is_valid=False,
                error_type=type(exc).__name__,
                error_message=str(exc),
                metadata=metadata,
                status="error",
            )
        except (GenerationFailedError, OperationTimeoutError) as exc:
            await ctx.error(f"SQL generation failed: {exc}")
            return GenerateSqlResult(
                is_valid=False,
                error_type=type(exc).__name__,
                error_message=str(exc),
                metadata=metadata,
                status="error",
            )

        return GenerateSqlResult(sql=sql, is_valid=True, metadata=metadata)

    @mcp.tool
    async def needs_query_execution(  # pyright: ignore[reportUnusedFunction]
        _ctx: Context,
        message: Annotated[str, Field(description="A chat message from the user")],
    ) -> QueryNeedResult:
        """Decide whether answering a chat message requires querying the database.

        Returns false when no schema is loaded or the message has no query-like wording.
        """
        reg = _registry()
        needs = await reg.detector.needs_query_execution(message, reg.schema_cache.current())
        _logger.info("needs_query_execution=%s for: %s", needs, _preview(message))
        return QueryNeedResult(message=message, needs_query=needs)

    _ = (generate_sql, needs_query_execution)
