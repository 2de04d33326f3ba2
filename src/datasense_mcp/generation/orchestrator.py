"""Generation orchestrator: generator, then sanitize, then the safety gate.

Sanitization always runs before the safety judgment so that correctable
issues (code fences, comments, trailing separators) never cause a rejection.
There is no second model round-trip for unsafe output.
"""

from __future__ import annotations

from fastmcp.utilities.logging import get_logger

from datasense_mcp.exceptions import UnsafeGeneratedQueryError
from datasense_mcp.safety.models import Dialect, SqlCandidate
from datasense_mcp.safety.validator import SqlSafetyValidator
from datasense_mcp.schema.models import SchemaSnapshot
from datasense_mcp.services.schema_cache import SchemaCache

from .generator import SqlGenerator
from .models import GenerationRequest

_logger = get_logger(__name__)


class GenerationOrchestrator:
    """Sequence SQL generation and validation for one request."""

    def __init__(
        self,
        generator: SqlGenerator,
        validator: SqlSafetyValidator,
        schema_cache: SchemaCache | None = None,
        *,
        default_dialect: Dialect = "tsql",
    ) -> None:
        self._generator = generator
        self._validator = validator
        self._schema_cache = schema_cache
        self.default_dialect = default_dialect

    def resolve_dialect(self, req: GenerationRequest) -> Dialect:
        return req.dialect or self.default_dialect

    def resolve_schema(self, req: GenerationRequest) -> SchemaSnapshot:
        """Request schema first, then the cached snapshot, then an empty one."""
        if req.schema_snapshot is not None:
            return req.schema_snapshot
        cached = self._schema_cache.current() if self._schema_cache is not None else None
        if cached is None:
            _logger.warning("No schema snapshot available; generating against an empty schema")
            return SchemaSnapshot.empty()
        return cached

    async def generate_candidate(
        self, req: GenerationRequest, *, timeout: float | None = None
    ) -> SqlCandidate:
        """Generate, sanitize and judge; never raises for unsafe SQL."""
        snapshot = self.resolve_schema(req)
        dialect = self.resolve_dialect(req)
        raw = await self._generator.generate(
            req.natural_language_text, snapshot, dialect, timeout=timeout
        )
        candidate = self._validator.validate(raw, dialect)
        if candidate.is_safe:
            _logger.info("Generated SQL passed the safety gate (%s)", dialect)
        else:
            _logger.warning("Generated SQL rejected: %s", candidate.verdict.reason)
        return candidate

    async def generate_sql(self, req: GenerationRequest, *, timeout: float | None = None) -> str:
        """Return sanitized, safe SQL.

        Raises:
            GenerationFailedError: The model failed or returned nothing
            UnsafeGeneratedQueryError: The sanitized SQL failed the safety gate
            OperationTimeoutError: The model call exceeded its budget
        """
        candidate = await self.generate_candidate(req, timeout=timeout)
        if not candidate.is_safe:
            raise UnsafeGeneratedQueryError(candidate.verdict.reason or "unsafe", candidate)
        return candidate.sanitized_text
