"""Result interpretation: rows back to Answer / Analysis / Summary prose."""

from __future__ import annotations

from .interpreter import ResultInterpreter
from .models import InterpretationRequest, InterpretationResult, InterpretResultsResult
from .orchestrator import InterpretationOrchestrator
from .parsing import parse_interpretation

__all__ = [
    "InterpretResultsResult",
    "InterpretationOrchestrator",
    "InterpretationRequest",
    "InterpretationResult",
    "ResultInterpreter",
    "parse_interpretation",
]
