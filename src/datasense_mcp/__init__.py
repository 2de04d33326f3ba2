"""datasense-mcp package for natural language to SQL and back.

Provides a Model Context Protocol (FastMCP) server that turns questions into
validated read-only SQL against a cached database schema, and turns query
results into natural-language explanations. The same operations are also
available as queued jobs for a background consumer.
"""

from datasense_mcp.generation.models import GenerationRequest
from datasense_mcp.interpretation.models import InterpretationRequest, InterpretationResult
from datasense_mcp.safety.models import SafetyVerdict, SqlCandidate
from datasense_mcp.schema.models import ColumnInfo, ForeignKeyInfo, SchemaSnapshot, TableInfo
from datasense_mcp.services import ConfigService, SchemaCache

__all__ = [  # noqa: RUF022
    # Core models
    "ColumnInfo",
    "ForeignKeyInfo",
    "GenerationRequest",
    "InterpretationRequest",
    "InterpretationResult",
    "SafetyVerdict",
    "SchemaSnapshot",
    "SqlCandidate",
    "TableInfo",
    # Services
    "ConfigService",
    "SchemaCache",
]
