"""Configuration service for datasense-mcp.

This module provides configuration management and database connection utilities
for the datasense-mcp application. It centralizes environment variable handling,
database engine creation and the budgets used by the language-model stages.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Literal

import sqlalchemy as sa

from datasense_mcp.safety.models import Dialect
from datasense_mcp.safety.validator import map_sqlalchemy_to_sqlglot

LLMProvider = Literal["ollama", "agent"]

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _int_env(name: str, default: int, minimum: int) -> int:
    val = os.getenv(name, str(default))
    try:
        n = int(val)
    except ValueError:
        n = default
    return max(minimum, n)


def _float_env(name: str, default: float, minimum: float) -> float:
    val = os.getenv(name, str(default))
    try:
        n = float(val)
    except ValueError:
        n = default
    return max(minimum, n)


def _list_env(name: str) -> list[str] | None:
    raw = os.getenv(name)
    if not raw:
        return None
    items = [item.strip() for item in raw.split(",") if item.strip()]
    return items or None


@dataclass(frozen=True, slots=True)
class LLMConfig:
    """Language-model client settings."""

    provider: LLMProvider
    model: str
    base_url: str
    timeout: float


@dataclass(frozen=True, slots=True)
class ResultBudget:
    """Caps applied when rendering result rows into a prompt."""

    max_rows: int
    max_cell_chars: int
    max_chars: int


@dataclass(frozen=True, slots=True)
class ConsumerConfig:
    """Async job consumer settings."""

    redis_url: str | None
    queue_key: str
    results_key: str
    concurrency: int
    job_timeout: float
    poll_timeout: float
    retry_delay: float
    recover_on_start: bool


class ConfigService:
    """Service for managing configuration and database connections."""

    @staticmethod
    def get_database_url() -> str | None:
        """Get database URL from environment variable.

        Returns:
            Database URL string, or None when no target database is configured
        """
        database_url = os.getenv("DATASENSE_DATABASE_URL")
        return database_url or None

    @staticmethod
    def create_database_engine(url: str) -> sa.Engine:
        """Create SQLAlchemy database engine.

        Args:
            url: Database connection URL

        Returns:
            SQLAlchemy Engine instance
        """
        return sa.create_engine(url, pool_pre_ping=True)

    @staticmethod
    def default_dialect() -> Dialect:
        """Dialect used when a request does not name one.

        An explicit DATASENSE_DEFAULT_DIALECT wins; otherwise the dialect is
        derived from the database URL scheme, falling back to T-SQL which is
        the database type the SDK clients assume by default.
        """
        explicit = os.getenv("DATASENSE_DEFAULT_DIALECT")
        if explicit:
            return map_sqlalchemy_to_sqlglot(explicit)
        url = ConfigService.get_database_url()
        if url:
            backend = sa.engine.make_url(url).get_backend_name()
            return map_sqlalchemy_to_sqlglot(backend)
        return "tsql"

    # ---- Schema reflection -----------------------------------------------
    @staticmethod
    def include_schemas() -> list[str] | None:
        """Optional whitelist of schemas to reflect."""
        return _list_env("DATASENSE_INCLUDE_SCHEMAS")

    @staticmethod
    def exclude_schemas() -> list[str] | None:
        """Optional blacklist of schemas to skip during reflection."""
        return _list_env("DATASENSE_EXCLUDE_SCHEMAS")

    @staticmethod
    def max_tables() -> int:
        """Maximum number of tables reflected into a snapshot."""
        return _int_env("DATASENSE_MAX_TABLES", 500, 1)

    @staticmethod
    def schema_refresh_timeout() -> float:
        """Time budget (seconds) for one schema refresh."""
        return _float_env("DATASENSE_SCHEMA_TIMEOUT", 30.0, 1.0)

    # ---- LLM configuration -----------------------------------------------
    @staticmethod
    def get_llm_config() -> LLMConfig:
        """Return language-model client settings."""
        provider = os.getenv("DATASENSE_LLM_PROVIDER", "ollama").strip().lower()
        if provider not in {"ollama", "agent"}:
            msg = f"Unsupported DATASENSE_LLM_PROVIDER: {provider!r}"
            raise ValueError(msg)
        return LLMConfig(
            provider="agent" if provider == "agent" else "ollama",
            model=os.getenv("DATASENSE_LLM_MODEL", "llama3.1:8b"),
            base_url=os.getenv("DATASENSE_OLLAMA_URL", "http://localhost:11434"),
            timeout=_float_env("DATASENSE_LLM_TIMEOUT", 120.0, 1.0),
        )

    @staticmethod
    def apply_enhancement() -> bool:
        """Whether a parsed enhancement replaces the baseline interpretation."""
        return os.getenv("DATASENSE_APPLY_ENHANCEMENT", "true").strip().lower() in _TRUE_VALUES

    # ---- Result size budgets ---------------------------------------------
    @staticmethod
    def result_budget() -> ResultBudget:
        """Caps for rendering result rows into interpretation prompts."""
        return ResultBudget(
            max_rows=_int_env("DATASENSE_RESULT_MAX_ROWS", 50, 1),
            max_cell_chars=_int_env("DATASENSE_RESULT_MAX_CELL_CHARS", 200, 10),
            max_chars=_int_env("DATASENSE_RESULT_MAX_CHARS", 20000, 1000),
        )

    # ---- Async jobs ------------------------------------------------------
    @staticmethod
    def get_consumer_config() -> ConsumerConfig:
        """Return async job consumer settings."""
        return ConsumerConfig(
            redis_url=os.getenv("DATASENSE_REDIS_URL") or None,
            queue_key=os.getenv("DATASENSE_JOB_QUEUE", "datasense:jobs"),
            results_key=os.getenv("DATASENSE_JOB_RESULTS", "datasense:job-results"),
            concurrency=_int_env("DATASENSE_CONSUMER_CONCURRENCY", 1, 1),
            job_timeout=_float_env("DATASENSE_JOB_TIMEOUT", 300.0, 1.0),
            poll_timeout=_float_env("DATASENSE_JOB_POLL_TIMEOUT", 5.0, 0.1),
            retry_delay=_float_env("DATASENSE_JOB_RETRY_DELAY", 5.0, 0.0),
            recover_on_start=os.getenv("DATASENSE_JOB_RECOVER_ON_START", "false").strip().lower()
            in _TRUE_VALUES,
        )
