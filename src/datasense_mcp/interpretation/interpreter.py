"""Turn query results back into prose with one language-model call."""

from __future__ import annotations

from typing import Any

from fastmcp.utilities.logging import get_logger

from datasense_mcp.exceptions import InterpretationFailedError, LanguageModelError
from datasense_mcp.llm.base import LanguageModelClient
from datasense_mcp.services.config_service import ResultBudget

from .models import InterpretationResult
from .parsing import parse_interpretation
from .rendering import DEFAULT_BUDGET, count_rows, render_rows

_logger = get_logger(__name__)

OUTPUT_FORMAT = (
    "CRITICAL OUTPUT FORMAT:\n"
    "You MUST respond with ONLY valid, complete JSON. No markdown, no code blocks, no "
    "explanations before or after. The JSON must be complete with proper closing braces. "
    "Respond with ONLY this exact structure:\n\n"
    '{"analysis":"text here","answer":"text here","summary":"text here"}'
)


def build_interpretation_prompt(
    question: str, sql_text: str, results: Any, budget: ResultBudget = DEFAULT_BUDGET
) -> str:
    total = count_rows(results)
    row_line = f"Rows returned: {total}\n" if total is not None else ""
    return (
        "You are an assistant. You've been given data from the database and the original "
        "question.\n\n"
        f'Original Question: "{question}"\n\n'
        f"Relevant data pulled using this query: {sql_text}\n"
        f"{row_line}"
        "from database:\n"
        f"{render_rows(results, budget)}\n\n"
        "YOUR TASK:\n"
        "Analyze the data and answer the original question. Provide three things:\n"
        "1. Analysis: What the data shows (2-4 sentences)\n"
        "2. Answer: Direct answer to the original question (1-2 sentences)\n"
        "3. Summary: Brief summary of key findings (1 sentence)\n\n"
        f"{OUTPUT_FORMAT}"
    )


class ResultInterpreter:
    """Produce an Answer/Analysis/Summary interpretation of query results."""

    def __init__(
        self,
        client: LanguageModelClient,
        *,
        budget: ResultBudget = DEFAULT_BUDGET,
        timeout: float | None = None,
    ) -> None:
        self._client = client
        self._budget = budget
        self._timeout = timeout

    async def interpret(
        self,
        original_question: str,
        sql_text: str,
        result_rows: Any,
        *,
        timeout: float | None = None,
    ) -> InterpretationResult:
        """Interpret results.

        Raises:
            InterpretationFailedError: Model failure or a response without the
                expected sections
            OperationTimeoutError: The model call exceeded its budget
        """
        prompt = build_interpretation_prompt(
            original_question, sql_text, result_rows, self._budget
        )
        _logger.info("Interpreting query results")
        try:
            response = await self._client.complete(
                prompt, timeout=timeout if timeout is not None else self._timeout
            )
        except LanguageModelError as exc:
            msg = f"Result interpretation failed: {exc}"
            raise InterpretationFailedError(msg) from exc

        _logger.debug("Interpretation response: %s", response)
        return parse_interpretation(response)
