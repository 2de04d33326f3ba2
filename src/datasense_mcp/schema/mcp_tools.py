"""MCP tool registration for the schema cache.

Exposes `refresh_schema` (re-read the catalog on demand) and
`schema_status` (readiness check for agents).
"""

from __future__ import annotations

from fastmcp import Context, FastMCP
from fastmcp.utilities.logging import get_logger

from datasense_mcp.exceptions import OperationTimeoutError, SchemaUnavailableError
from datasense_mcp.services.schema_cache import SchemaCache
from datasense_mcp.services.state import SchemaRefreshPhase

from .models import SchemaStatus

_logger = get_logger(__name__)

_DESCRIPTIONS: dict[SchemaRefreshPhase, str] = {
    SchemaRefreshPhase.IDLE: "Not refreshed yet; SQL is generated without schema context.",
    SchemaRefreshPhase.REFRESHING: "Reading the database catalog.",
    SchemaRefreshPhase.READY: "Schema loaded; generation uses the cached snapshot.",
    SchemaRefreshPhase.DEGRADED: (
        "Last refresh failed; generation uses the previous snapshot (or none). "
        "See error_message and call refresh_schema to retry."
    ),
    SchemaRefreshPhase.STOPPED: "Stopped.",
}


def build_schema_status(cache: SchemaCache) -> SchemaStatus:
    """Describe the cache state in client-facing terms."""
    state = cache.status()
    snapshot = cache.current()
    return SchemaStatus(
        phase=state.phase.name,  # type: ignore[arg-type]
        attempts=state.attempts,
        started_at=state.started_at,
        completed_at=state.completed_at,
        error_message=state.error_message,
        table_count=len(snapshot.tables) if snapshot is not None else None,
        database_name=snapshot.database_name if snapshot is not None else None,
        description=_DESCRIPTIONS[state.phase],
    )


def register_schema_tools(mcp: FastMCP, cache: SchemaCache | None = None) -> None:
    """Register schema cache tools."""

    def _cache() -> SchemaCache:
        return cache or SchemaCache.get_instance()

    @mcp.tool
    async def refresh_schema(ctx: Context) -> SchemaStatus:  # pyright: ignore[reportUnusedFunction]
        """Re-read the database catalog and publish a new schema snapshot.

        On failure the previous snapshot stays in use and the returned status is DEGRADED.
        """
        target = _cache()
        try:
            snapshot = await target.refresh()
        except (SchemaUnavailableError, OperationTimeoutError) as exc:
            await ctx.warning(f"Schema refresh failed: {exc}")
        else:
            _logger.info("refresh_schema: %d tables", len(snapshot.tables))
        return build_schema_status(target)

    @mcp.tool
    async def schema_status(_ctx: Context) -> SchemaStatus:  # pyright: ignore[reportUnusedFunction]
        """Schema readiness check.

        If phase is not READY, SQL is generated with a stale or empty schema; relay the
        description to the user.
        """
        return build_schema_status(_cache())

    _ = (refresh_schema, schema_status)
