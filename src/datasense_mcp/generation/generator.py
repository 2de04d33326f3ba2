"""Schema-aware SQL generation.

Builds a single prompt from the question, the rendered schema and the target
dialect, asks the language model once, and hands back its raw output. All
cleanup belongs to the safety validator; retries belong to the caller.
"""

from __future__ import annotations

from fastmcp.utilities.logging import get_logger

from datasense_mcp.exceptions import GenerationFailedError, LanguageModelError
from datasense_mcp.llm.base import LanguageModelClient
from datasense_mcp.safety.models import Dialect
from datasense_mcp.schema.models import SchemaSnapshot
from datasense_mcp.schema.rendering import render_schema

_logger = get_logger(__name__)

DIALECT_LABELS: dict[str, str] = {
    "tsql": "SQL Server (T-SQL)",
    "postgres": "PostgreSQL",
    "mysql": "MySQL",
    "sqlite": "SQLite",
    "oracle": "Oracle",
    "snowflake": "Snowflake",
    "bigquery": "BigQuery",
    "sql": "ANSI SQL",
}


def build_generation_prompt(question: str, snapshot: SchemaSnapshot, dialect: Dialect) -> str:
    label = DIALECT_LABELS.get(dialect, dialect)
    database = snapshot.database_name or "(unnamed)"
    return (
        f"You are a SQL query generator for {label}.\n"
        "Given a database schema and a natural language question, generate a valid, "
        "safe SQL SELECT query.\n\n"
        f"Database: {database}\n"
        "Schema:\n"
        f"{render_schema(snapshot)}\n"
        f'Question: "{question}"\n\n'
        "IMPORTANT RULES:\n"
        "1. Generate ONLY a single SELECT query (no INSERT, UPDATE, DELETE, DROP, TRUNCATE)\n"
        f"2. Use proper {label} syntax\n"
        "3. Include all necessary JOINs based on the relationships shown\n"
        "4. Use single quotes for string literals\n"
        "5. Use aggregation functions (COUNT, SUM, AVG, etc.) when appropriate\n"
        "6. Return ONLY the SQL query, no explanations or markdown formatting\n"
        "7. Use table and column names exactly as shown in the schema\n"
        "8. Be aware of NULL handling and use appropriate functions\n\n"
        "Return the SQL query:"
    )


class SqlGenerator:
    """Turn a question plus schema into raw model SQL."""

    def __init__(self, client: LanguageModelClient, *, timeout: float | None = None) -> None:
        self._client = client
        self._timeout = timeout

    async def generate(
        self,
        natural_language_text: str,
        snapshot: SchemaSnapshot,
        dialect: Dialect,
        *,
        timeout: float | None = None,
    ) -> str:
        """Return the model's output unmodified.

        Raises:
            GenerationFailedError: The model call failed or produced no text
            OperationTimeoutError: The model call exceeded its budget
        """
        prompt = build_generation_prompt(natural_language_text, snapshot, dialect)
        try:
            raw = await self._client.complete(
                prompt, timeout=timeout if timeout is not None else self._timeout
            )
        except LanguageModelError as exc:
            msg = f"SQL generation failed: {exc}"
            raise GenerationFailedError(msg) from exc

        if not raw or not raw.strip():
            msg = "SQL generation failed: the language model returned empty output"
            raise GenerationFailedError(msg)

        _logger.debug("Generated SQL for %s: %s", dialect, raw)
        return raw
