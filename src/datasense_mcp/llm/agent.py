"""PydanticAI-backed completion client.

Wraps a text-output `pydantic_ai.Agent` so that any model PydanticAI
supports (``openai:gpt-4o-mini``, ``anthropic:...``, ``ollama:...``) can serve
as the completion oracle.
"""

from __future__ import annotations

import asyncio

from fastmcp.utilities.logging import get_logger
from pydantic_ai import Agent

from datasense_mcp.exceptions import LanguageModelError, OperationTimeoutError

_logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are the language model behind a natural-language database assistant. "
    "Follow the output format requested in each prompt exactly."
)


def build_completion_agent(model_id: str) -> Agent[None, str]:
    """Create a PydanticAI Agent returning plain text."""
    return Agent(model=model_id, system_prompt=SYSTEM_PROMPT, output_type=str)


class AgentCompletionClient:
    """`LanguageModelClient` backed by a PydanticAI agent."""

    def __init__(
        self,
        model_id: str,
        *,
        default_timeout: float = 120.0,
        agent: Agent[None, str] | None = None,
    ) -> None:
        self.model_id = model_id
        self.default_timeout = default_timeout
        self._agent = agent

    def _get_agent(self) -> Agent[None, str]:
        # Built lazily: provider credentials are resolved at construction time
        if self._agent is None:
            self._agent = build_completion_agent(self.model_id)
        return self._agent

    async def complete(self, prompt: str, *, timeout: float | None = None) -> str:
        budget = timeout if timeout is not None else self.default_timeout
        try:
            agent = self._get_agent()
            result = await asyncio.wait_for(agent.run(prompt), budget)
        except TimeoutError as exc:
            msg = f"Model {self.model_id} timed out after {budget}s"
            raise OperationTimeoutError(msg) from exc
        except Exception as exc:  # noqa: BLE001 - provider errors vary by backend
            _logger.error("Error querying %s: %s", self.model_id, exc)
            msg = f"Model {self.model_id} request failed: {exc}"
            raise LanguageModelError(msg) from exc
        return result.output

    async def aclose(self) -> None:
        return None
