"""MCP tool registration for result interpretation.

Exposes `interpret_results` and `interpret_results_extended`. Both return
`InterpretResultsResult`; failures carry the error class name instead of
being raised.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastmcp import Context, FastMCP
from fastmcp.utilities.logging import get_logger
from pydantic import Field, ValidationError

from datasense_mcp.exceptions import InterpretationFailedError, OperationTimeoutError
from datasense_mcp.services.service_registry import ServiceRegistry

from .models import InterpretationRequest, InterpretationResult, InterpretResultsResult

_logger = get_logger(__name__)
MAX_QUERY_DISPLAY = 100

_QUESTION_DESC = "The user's original question"
_SQL_DESC = "The SQL statement that produced the results"
_RESULTS_DESC = (
    "Query results as JSON (typically a list of row objects). Large results are truncated "
    "before they reach the model."
)


def _failure(exc: Exception) -> InterpretResultsResult:
    return InterpretResultsResult(
        is_valid=False, error_type=type(exc).__name__, error_message=str(exc), status="error"
    )


def register_interpretation_tools(
    mcp: FastMCP, registry: ServiceRegistry | None = None
) -> None:
    """Register tools that explain query results in natural language."""

    def _registry() -> ServiceRegistry:
        return registry or ServiceRegistry.get_instance()

    async def _run(
        ctx: Context,
        question: str,
        sql: str,
        results: Any,
        additional_context: str | None,
    ) -> InterpretResultsResult:
        preview = question[:MAX_QUERY_DISPLAY] + (
            "..." if len(question) > MAX_QUERY_DISPLAY else ""
        )
        _logger.info("Interpreting results for: %s", preview)
        try:
            req = InterpretationRequest(
                original_question=question,
                sql_text=sql,
                result_rows=results,
                additional_context=additional_context,
            )
        except ValidationError as exc:
            await ctx.error(f"Invalid interpretation request: {exc.error_count()} error(s)")
            return _failure(exc)

        orchestrator = _registry().interpretation
        try:
            interpretation: InterpretationResult
            if additional_context is None:
                interpretation = await orchestrator.interpret_results(req)
            else:
                interpretation = await orchestrator.interpret_results_extended(req)
        except (InterpretationFailedError, OperationTimeoutError) as exc:
            await ctx.error(f"Interpretation failed: {exc}")
            return _failure(exc)
        return InterpretResultsResult(interpretation=interpretation, is_valid=True)

    @mcp.tool
    async def interpret_results(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        question: Annotated[str, Field(description=_QUESTION_DESC)],
        sql: Annotated[str, Field(description=_SQL_DESC)],
        results: Annotated[Any, Field(description=_RESULTS_DESC)],
    ) -> InterpretResultsResult:
        """Explain query results as an Answer, an Analysis and a Summary."""
        return await _run(ctx, question, sql, results, None)

    @mcp.tool
    async def interpret_results_extended(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        question: Annotated[str, Field(description=_QUESTION_DESC)],
        sql: Annotated[str, Field(description=_SQL_DESC)],
        results: Annotated[Any, Field(description=_RESULTS_DESC)],
        additional_context: Annotated[
            str,
            Field(
                description=(
                    "Extra context to refine the interpretation (business rules, units, "
                    "thresholds). Blank context gives the same result as interpret_results."
                )
            ),
        ] = "",
    ) -> InterpretResultsResult:
        """Explain query results, refined with additional context when it is provided.

        The refinement is best-effort: if it fails, the plain interpretation is returned.
        """
        return await _run(ctx, question, sql, results, additional_context)

    _ = (interpret_results, interpret_results_extended)
