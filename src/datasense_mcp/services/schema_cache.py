"""Schema cache for datasense-mcp.

Holds the currently published `SchemaSnapshot`. A refresh reads the live
catalog on a worker thread, builds a complete new snapshot and publishes it
with a single reference assignment, so readers of `current()` always see a
fully formed snapshot (old or new) and never take a lock. Refreshes are
serialized; a failed refresh leaves the previous snapshot in effect and the
server continues in degraded mode.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
import threading
import time
from typing import ClassVar

from fastmcp.utilities.logging import get_logger

from datasense_mcp.exceptions import OperationTimeoutError, SchemaUnavailableError
from datasense_mcp.schema.models import SchemaSnapshot
from datasense_mcp.schema.reflection import CatalogReader, SqlAlchemyCatalogReader
from datasense_mcp.services.config_service import ConfigService
from datasense_mcp.services.state import SchemaRefreshPhase, SchemaRefreshState


class SchemaCache:
    """Single-writer, multi-reader holder of the published schema snapshot."""

    _instance: ClassVar[SchemaCache | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, reader: CatalogReader | None, *, timeout: float | None = None) -> None:
        """Initialize the cache.

        Args:
            reader: Catalog reader used by `refresh`; None when no target
                database is configured (every refresh then fails)
            timeout: Default time budget in seconds for one refresh
        """
        self._reader = reader
        self._timeout = timeout
        self._snapshot: SchemaSnapshot | None = None
        self._refresh_lock = asyncio.Lock()
        self._background: asyncio.Task[SchemaSnapshot | None] | None = None
        self._state = SchemaRefreshState(phase=SchemaRefreshPhase.IDLE)
        self._logger = get_logger(__name__)

    @classmethod
    def get_instance(cls) -> SchemaCache:
        """Get the process-wide cache, wiring the reader from configuration."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls(
                        cls._reader_from_config(),
                        timeout=ConfigService.schema_refresh_timeout(),
                    )
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance (primarily for testing)."""
        with cls._lock:
            cls._instance = None

    @staticmethod
    def _reader_from_config() -> CatalogReader | None:
        url = ConfigService.get_database_url()
        if url is None:
            return None
        engine = ConfigService.create_database_engine(url)
        return SqlAlchemyCatalogReader(
            engine,
            include_schemas=ConfigService.include_schemas(),
            exclude_schemas=ConfigService.exclude_schemas(),
            max_tables=ConfigService.max_tables(),
            reflect_timeout_sec=int(ConfigService.schema_refresh_timeout()),
        )

    # ---- reads ---------------------------------------------------------------
    def current(self) -> SchemaSnapshot | None:
        """Return the published snapshot, or None before the first successful refresh."""
        return self._snapshot

    def status(self) -> SchemaRefreshState:
        """Return a snapshot of the refresh state."""
        return self._state

    # ---- refresh -------------------------------------------------------------
    async def refresh(self, timeout: float | None = None) -> SchemaSnapshot:
        """Read the catalog and publish a new snapshot.

        Raises:
            SchemaUnavailableError: The catalog could not be read
            OperationTimeoutError: The read exceeded its time budget
        """
        budget = timeout if timeout is not None else self._timeout
        async with self._refresh_lock:
            self._state = replace(
                self._state, phase=SchemaRefreshPhase.REFRESHING, started_at=time.time()
            )
            try:
                snapshot = await self._read(budget)
            except (SchemaUnavailableError, OperationTimeoutError) as exc:
                self._state = replace(
                    self._state,
                    phase=SchemaRefreshPhase.DEGRADED,
                    completed_at=time.time(),
                    error_message=str(exc),
                    attempts=self._state.attempts + 1,
                )
                raise

            self._snapshot = snapshot
            self._state = replace(
                self._state,
                phase=SchemaRefreshPhase.READY,
                completed_at=time.time(),
                error_message=None,
                attempts=self._state.attempts + 1,
                table_count=len(snapshot.tables),
            )
            self._logger.info("Schema snapshot published (%d tables)", len(snapshot.tables))
            return snapshot

    async def _read(self, budget: float | None) -> SchemaSnapshot:
        reader = self._reader
        if reader is None:
            msg = "No database connection configured (set DATASENSE_DATABASE_URL)"
            raise SchemaUnavailableError(msg)
        try:
            return await asyncio.wait_for(asyncio.to_thread(reader.read_schema), budget)
        except TimeoutError as exc:
            msg = f"Schema refresh timed out after {budget}s"
            raise OperationTimeoutError(msg) from exc
        except SchemaUnavailableError:
            raise
        except Exception as exc:  # noqa: BLE001 - any reader failure means no catalog
            msg = f"Schema refresh failed: {exc}"
            raise SchemaUnavailableError(msg) from exc

    def start_background_refresh(self) -> asyncio.Task[SchemaSnapshot | None]:
        """Start the startup refresh without blocking the caller.

        A failure is logged and swallowed: generation proceeds with a stale or
        empty schema.
        """
        if self._background is not None and not self._background.done():
            self._logger.debug("Background refresh already running; skipping start")
            return self._background

        async def _runner() -> SchemaSnapshot | None:
            try:
                return await self.refresh()
            except (SchemaUnavailableError, OperationTimeoutError) as exc:
                self._logger.warning("Schema refresh failed; continuing in degraded mode: %s", exc)
                return None

        self._background = asyncio.create_task(_runner(), name="schema-refresh")
        return self._background

    async def shutdown(self) -> None:
        """Stop background work; the published snapshot stays readable."""
        task = self._background
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                self._logger.debug("Background schema refresh cancelled")
        self._state = replace(self._state, phase=SchemaRefreshPhase.STOPPED)
