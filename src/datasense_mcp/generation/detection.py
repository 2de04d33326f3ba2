"""Detect whether a chat message needs database data to be answered.

A cheap keyword pre-filter runs first; only when it matches and a schema is
available is the language model asked for a YES/NO decision. Any model
failure answers False so a chat turn is never turned into a query by
accident.
"""

from __future__ import annotations

from fastmcp.utilities.logging import get_logger

from datasense_mcp.exceptions import LanguageModelError, OperationTimeoutError
from datasense_mcp.llm.base import LanguageModelClient
from datasense_mcp.schema.models import SchemaSnapshot

_logger = get_logger(__name__)

QUERY_KEYWORDS: tuple[str, ...] = (
    "show",
    "list",
    "get",
    "find",
    "search",
    "count",
    "select",
    "how many",
    "what are",
    "which",
)


def has_query_keywords(message: str) -> bool:
    lowered = message.lower()
    return any(keyword in lowered for keyword in QUERY_KEYWORDS)


class QueryIntentDetector:
    def __init__(self, client: LanguageModelClient, *, timeout: float | None = None) -> None:
        self._client = client
        self._timeout = timeout

    async def needs_query_execution(self, message: str, snapshot: SchemaSnapshot | None) -> bool:
        if snapshot is None or not has_query_keywords(message):
            return False

        tables = ", ".join(t.qualified_name for t in snapshot.tables)
        prompt = (
            "Analyze if the following user message requires querying a database to answer "
            "accurately.\n"
            f"Consider the available database schema: {tables}\n\n"
            f'User message: "{message}"\n\n'
            "Respond with only 'YES' if database query is needed, or 'NO' if it can be "
            "answered without querying.\n"
            "Be conservative - only say YES if the message clearly requires database data."
        )
        try:
            response = await self._client.complete(prompt, timeout=self._timeout)
        except (LanguageModelError, OperationTimeoutError) as exc:
            _logger.error("Error detecting if query execution is needed: %s", exc)
            return False
        return response.strip().upper().startswith("YES")
