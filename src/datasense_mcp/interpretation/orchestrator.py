"""Interpretation orchestrator with a best-effort enhancement pass.

The baseline interpretation always comes first. When additional context is
supplied, a second model call asks for an interpretation that incorporates
it. Enhancement can only improve a result: any failure in that pass is
logged and the baseline is returned.
"""

from __future__ import annotations

from fastmcp.utilities.logging import get_logger

from datasense_mcp.exceptions import EnhancementFailedError
from datasense_mcp.llm.base import LanguageModelClient

from .interpreter import OUTPUT_FORMAT, ResultInterpreter
from .models import InterpretationRequest, InterpretationResult
from .parsing import parse_interpretation

_logger = get_logger(__name__)


def build_enhancement_prompt(baseline: InterpretationResult, additional_context: str) -> str:
    return (
        "Original interpretation:\n"
        f"Answer: {baseline.answer}\n"
        f"Analysis: {baseline.analysis}\n"
        f"Summary: {baseline.summary}\n\n"
        f"Additional context to consider: {additional_context.strip()}\n\n"
        "Provide an enhanced interpretation that incorporates the additional context while "
        "maintaining accuracy. Keep the Answer, Analysis and Summary structure.\n\n"
        f"{OUTPUT_FORMAT}"
    )


class InterpretationOrchestrator:
    """Entry points for plain and context-enhanced interpretation."""

    def __init__(
        self,
        interpreter: ResultInterpreter,
        client: LanguageModelClient,
        *,
        apply_enhancement: bool = True,
        timeout: float | None = None,
    ) -> None:
        self._interpreter = interpreter
        self._client = client
        self._apply_enhancement = apply_enhancement
        self._timeout = timeout

    async def interpret_results(
        self, req: InterpretationRequest, *, timeout: float | None = None
    ) -> InterpretationResult:
        return await self._interpreter.interpret(
            req.original_question, req.sql_text, req.result_rows, timeout=timeout
        )

    async def interpret_results_extended(
        self, req: InterpretationRequest, *, timeout: float | None = None
    ) -> InterpretationResult:
        """Baseline interpretation, optionally enhanced with `additional_context`.

        Blank context behaves exactly like `interpret_results`.
        """
        baseline = await self.interpret_results(req, timeout=timeout)
        if not req.has_additional_context:
            return baseline

        try:
            enhanced = await self._enhance(baseline, req.additional_context or "", timeout)
        except EnhancementFailedError as exc:
            _logger.warning("Enhancement discarded, returning baseline: %s", exc)
            return baseline

        if not self._apply_enhancement:
            _logger.debug("Enhancement succeeded but replacement is disabled")
            return baseline
        return enhanced

    async def _enhance(
        self, baseline: InterpretationResult, context: str, timeout: float | None
    ) -> InterpretationResult:
        prompt = build_enhancement_prompt(baseline, context)
        budget = timeout if timeout is not None else self._timeout
        try:
            response = await self._client.complete(prompt, timeout=budget)
            return parse_interpretation(response)
        except Exception as exc:  # noqa: BLE001 - enhancement is strictly best-effort
            msg = f"Enhancement pass failed: {exc}"
            raise EnhancementFailedError(msg) from exc
