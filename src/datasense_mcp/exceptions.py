"""Custom exception hierarchy for datasense-mcp.

Every failure that crosses a component boundary is raised as one of the
types below so that callers can react to the specific condition instead of
a generic error.

Exception Categories:
- Schema errors for catalog reflection and cache refresh failures
- Generation errors for SQL generation and the safety gate
- Interpretation errors for result interpretation and enhancement
- Transport errors for language-model calls and timeouts
- Job errors for undecodable queued work
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datasense_mcp.safety.models import SqlCandidate


class DataSenseError(Exception):
    """Base exception for datasense-mcp operations."""


class SchemaUnavailableError(DataSenseError):
    """Raised when the database catalog cannot be read.

    This is recoverable: the schema cache keeps serving the previously
    published snapshot (or none) and generation continues in degraded mode.
    """


class LanguageModelError(DataSenseError):
    """Raised by a language-model client when a completion call fails.

    Covers transport errors, non-success HTTP statuses and malformed
    provider payloads. Timeouts are reported as `OperationTimeoutError`.
    """


class OperationTimeoutError(DataSenseError):
    """Raised when a model call or schema refresh exceeds its time budget.

    Deliberately distinct from the generation/interpretation failures so
    callers can decide to retry with backoff.
    """


class GenerationFailedError(DataSenseError):
    """Raised when the language model fails or returns no SQL."""


class UnsafeGeneratedQueryError(DataSenseError):
    """Raised when generated SQL is still unsafe after sanitization.

    Terminal for the request; the caller must submit a new request to get
    another attempt.
    """

    def __init__(self, reason: str, candidate: SqlCandidate | None = None) -> None:
        super().__init__(f"Generated SQL failed safety validation: {reason}")
        self.reason = reason
        self.candidate = candidate


class InterpretationFailedError(DataSenseError):
    """Raised when the model response cannot be turned into an interpretation."""


class EnhancementFailedError(DataSenseError):
    """Raised when the optional enhancement pass fails.

    Never leaves the interpretation orchestrator; the baseline is returned
    instead.
    """


class JobDecodeError(DataSenseError):
    """Raised when a queued job payload cannot be decoded into a request."""
