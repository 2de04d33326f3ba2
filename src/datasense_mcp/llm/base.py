"""Language-model client contract.

The model is treated as an opaque text-completion oracle: one prompt in,
free text out. Implementations translate every transport or provider
failure into `LanguageModelError` and every expired budget into
`OperationTimeoutError` so that the generator and interpreter can map them
onto their own error types.
"""

from __future__ import annotations

from typing import Protocol


class LanguageModelClient(Protocol):
    """Single-call text completion."""

    async def complete(self, prompt: str, *, timeout: float | None = None) -> str:
        """Return the model's completion for `prompt`.

        Raises:
            LanguageModelError: The call failed or the provider payload was unusable
            OperationTimeoutError: The call did not finish within `timeout` seconds
        """
        ...

    async def aclose(self) -> None:
        """Release network resources held by the client."""
        ...
