"""Ollama completion client.

Calls the non-streaming `/api/generate` endpoint of an Ollama server and
returns the `response` field of the reply.
"""

from __future__ import annotations

from fastmcp.utilities.logging import get_logger
import httpx

from datasense_mcp.exceptions import LanguageModelError, OperationTimeoutError

_logger = get_logger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "llama3.1:8b"


class OllamaCompletionClient:
    """`LanguageModelClient` backed by an Ollama HTTP server."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_OLLAMA_URL,
        model: str = DEFAULT_OLLAMA_MODEL,
        default_timeout: float = 120.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model = model
        self.default_timeout = default_timeout
        self._client = http_client or httpx.AsyncClient(base_url=base_url.rstrip("/"))

    async def complete(self, prompt: str, *, timeout: float | None = None) -> str:
        budget = timeout if timeout is not None else self.default_timeout
        payload = {"model": self.model, "prompt": prompt, "stream": False}
        try:
            response = await self._client.post("/api/generate", json=payload, timeout=budget)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            msg = f"Ollama call timed out after {budget}s"
            raise OperationTimeoutError(msg) from exc
        except httpx.HTTPError as exc:
            _logger.error("Error querying Ollama: %s", exc)
            msg = f"Ollama request failed: {exc}"
            raise LanguageModelError(msg) from exc

        try:
            body = response.json()
        except ValueError as exc:
            msg = "Ollama returned a non-JSON body"
            raise LanguageModelError(msg) from exc
        if not isinstance(body, dict) or not isinstance(body.get("response"), str):
            msg = "Ollama reply has no text `response` field"
            raise LanguageModelError(msg)
        return body["response"]

    async def aclose(self) -> None:
        await self._client.aclose()
