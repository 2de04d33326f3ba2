"""Request/response models for result interpretation."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class InterpretationRequest(BaseModel):
    """Question, executed SQL and its raw results."""

    model_config = ConfigDict(frozen=True)

    original_question: str = Field(min_length=1, description="The user's original question")
    sql_text: str = Field(min_length=1, description="SQL that produced the results")
    result_rows: Any = Field(description="Query results as JSON-like data (rows, objects, ...)")
    additional_context: str | None = Field(
        default=None, description="Optional extra context used by the enhancement pass"
    )

    @property
    def has_additional_context(self) -> bool:
        return bool(self.additional_context and self.additional_context.strip())


class InterpretationResult(BaseModel):
    """Structured natural-language interpretation of query results."""

    model_config = ConfigDict(frozen=True)

    answer: str = Field(description="Direct answer to the original question")
    analysis: str = Field(description="What the data shows")
    summary: str = Field(description="Brief summary of key findings")


class InterpretResultsResult(BaseModel):
    """Tool response for the interpretation tools."""

    interpretation: InterpretationResult | None = Field(
        default=None, description="Interpretation when successful"
    )
    is_valid: bool = Field(description="True when an interpretation was produced")
    error_type: str | None = Field(default=None, description="Error class name on failure")
    error_message: str | None = Field(default=None, description="Human-readable failure reason")
    status: Literal["ok", "error"] = Field(default="ok", description="Overall status of the call")
