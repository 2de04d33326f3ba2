"""Typed refresh state for the schema cache.

Internal module providing strongly-typed lifecycle state for
`SchemaCache`. Not exposed outside the process except through the
`schema_status` tool and the health route.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class SchemaRefreshPhase(Enum):
    """Lifecycle phase of the schema cache."""

    IDLE = auto()
    REFRESHING = auto()
    READY = auto()
    DEGRADED = auto()
    STOPPED = auto()


@dataclass(frozen=True)
class SchemaRefreshState:
    """Snapshot of refresh state with timestamps and error details."""

    phase: SchemaRefreshPhase
    started_at: float | None = None
    completed_at: float | None = None
    error_message: str | None = None
    attempts: int = 0
    table_count: int | None = None

