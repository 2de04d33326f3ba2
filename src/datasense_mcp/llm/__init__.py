"""Language-model clients.

Exports the client protocol, the two shipped implementations and a factory
that picks one from configuration.
"""

from __future__ import annotations

from datasense_mcp.services.config_service import LLMConfig

from .agent import AgentCompletionClient
from .base import LanguageModelClient
from .ollama import OllamaCompletionClient


def create_llm_client(config: LLMConfig) -> LanguageModelClient:
    """Build the client selected by `DATASENSE_LLM_PROVIDER`."""
    if config.provider == "agent":
        return AgentCompletionClient(config.model, default_timeout=config.timeout)
    return OllamaCompletionClient(
        base_url=config.base_url, model=config.model, default_timeout=config.timeout
    )


__all__ = [
    "AgentCompletionClient",
    "LanguageModelClient",
    "OllamaCompletionClient",
    "create_llm_client",
]
