"""Request/response models for SQL generation."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from datasense_mcp.safety.models import Dialect
from datasense_mcp.schema.models import SchemaSnapshot


class GenerationRequest(BaseModel):
    """One natural-language-to-SQL request."""

    model_config = ConfigDict(frozen=True)

    natural_language_text: str = Field(min_length=1, description="The user's question")
    schema_snapshot: SchemaSnapshot | None = Field(
        default=None,
        description="Schema to generate against; the cached snapshot is used when omitted",
    )
    dialect: Dialect | None = Field(
        default=None, description="Target SQL dialect; the server default is used when omitted"
    )


class GenerateSqlResult(BaseModel):
    """Tool response for `generate_sql`."""

    sql: str = Field(default="", description="Sanitized, safety-checked SQL (empty on error)")
    is_valid: bool = Field(description="True when SQL was generated and passed the safety gate")
    error_type: str | None = Field(
        default=None, description="Error class name when generation failed"
    )
    error_message: str | None = Field(default=None, description="Human-readable failure reason")
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="dialect, tables_count, schema_source, generated_at"
    )
    status: Literal["ok", "error"] = Field(default="ok", description="Overall status of the call")


class QueryNeedResult(BaseModel):
    """Tool response for `needs_query_execution`."""

    message: str = Field(description="The message that was classified")
    needs_query: bool = Field(description="True when answering requires database data")
