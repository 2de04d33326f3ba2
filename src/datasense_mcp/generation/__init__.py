"""Natural-language-to-SQL generation.

Exports the request/response models, the schema-aware generator, the
orchestrator that puts its output through the safety gate, and the
query-intent detector.
"""

from __future__ import annotations

from .detection import QueryIntentDetector
from .generator import SqlGenerator, build_generation_prompt
from .models import GenerateSqlResult, GenerationRequest, QueryNeedResult
from .orchestrator import GenerationOrchestrator

__all__ = [
    "GenerateSqlResult",
    "GenerationOrchestrator",
    "GenerationRequest",
    "QueryIntentDetector",
    "QueryNeedResult",
    "SqlGenerator",
    "build_generation_prompt",
]
