"""Typed Pydantic models for the SQL safety gate.

These models are intentionally small and immutable; a candidate is produced
per generation call and never persisted.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# Keep a pragmatic set of supported dialects commonly used in this project.
Dialect = Literal[
    "sql",
    "postgres",
    "mysql",
    "sqlite",
    "tsql",
    "oracle",
    "snowflake",
    "bigquery",
]


class SafetyVerdict(BaseModel):
    """Outcome of the allow-list check for one sanitized statement."""

    model_config = ConfigDict(frozen=True)

    is_safe: bool = Field(description="True only when the statement passed every rule")
    reason: str | None = Field(
        default=None, description="Why the statement was rejected (None when safe)"
    )

    @classmethod
    def safe(cls) -> SafetyVerdict:
        return cls(is_safe=True)

    @classmethod
    def unsafe(cls, reason: str) -> SafetyVerdict:
        return cls(is_safe=False, reason=reason)


class SqlCandidate(BaseModel):
    """Model output together with its sanitized form and safety verdict."""

    model_config = ConfigDict(frozen=True)

    raw_text: str = Field(description="SQL text exactly as returned by the model")
    sanitized_text: str = Field(description="Text after deterministic sanitization")
    verdict: SafetyVerdict = Field(description="Allow-list verdict for sanitized_text")

    @property
    def is_safe(self) -> bool:
        return self.verdict.is_safe
