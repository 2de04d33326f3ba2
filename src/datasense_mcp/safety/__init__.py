"""Read-only SQL safety gate.

Exports the sanitizer/validator and its result types. The validator is pure:
it never touches a database and never calls a language model.
"""

from __future__ import annotations

from .models import Dialect, SafetyVerdict, SqlCandidate
from .validator import (
    FORBIDDEN_KEYWORDS,
    SIDE_EFFECT_FUNCTIONS,
    SqlSafetyValidator,
    map_sqlalchemy_to_sqlglot,
)

__all__ = [
    "FORBIDDEN_KEYWORDS",
    "SIDE_EFFECT_FUNCTIONS",
    "Dialect",
    "SafetyVerdict",
    "SqlCandidate",
    "SqlSafetyValidator",
    "map_sqlalchemy_to_sqlglot",
]
