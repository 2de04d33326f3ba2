"""Database catalog reader.

This module provides the `CatalogReader` protocol consumed by the schema
cache and `SqlAlchemyCatalogReader`, which reflects the live database
through the SQLAlchemy inspector and builds an immutable `SchemaSnapshot`.
It abstracts the per-dialect details of catalog queries so the rest of the
system only ever sees snapshots.

Classes:
- CatalogReader: Protocol for anything that can produce a snapshot
- SqlAlchemyCatalogReader: Inspector-backed implementation
"""

from __future__ import annotations

from typing import Protocol

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.engine.reflection import Inspector
from sqlalchemy.exc import SQLAlchemyError

from datasense_mcp.exceptions import SchemaUnavailableError

from .models import ColumnInfo, ForeignKeyInfo, SchemaSnapshot, TableInfo

_logger = get_logger(__name__)


def _column_length(col_type: object) -> int | None:
    length = getattr(col_type, "length", None)
    return length if isinstance(length, int) else None


def default_excluded_schemas(dialect_name: str) -> list[str]:
    """Get default system schemas to exclude for a database dialect.

    Args:
        dialect_name: SQLAlchemy dialect name (e.g., 'postgresql', 'mysql')

    Returns:
        List of system schema names to exclude from reflection
    """
    dialect_lower = dialect_name.lower()

    if "postgresql" in dialect_lower or "postgres" in dialect_lower:
        return ["information_schema", "pg_catalog", "pg_toast"]
    if "mssql" in dialect_lower or "sqlserver" in dialect_lower:
        return ["information_schema", "sys", "guest"]
    if "mysql" in dialect_lower or "mariadb" in dialect_lower:
        return ["information_schema", "mysql", "performance_schema", "sys"]
    if "oracle" in dialect_lower:
        return ["sys", "system", "xdb", "mdsys", "ctxsys"]
    if "snowflake" in dialect_lower:
        return ["information_schema"]
    return ["information_schema", "pg_catalog", "sys"]


class CatalogReader(Protocol):
    """Anything able to read the structure of the target database."""

    def read_schema(self) -> SchemaSnapshot:
        """Return a fresh snapshot or raise `SchemaUnavailableError`."""
        ...


class SqlAlchemyCatalogReader:
    """Reflect the database catalog via the SQLAlchemy inspector.

    Blocking; the schema cache runs it on a worker thread.

    Attributes:
        engine: SQLAlchemy engine for database connections
        include_schemas: Optional list of schemas to include (whitelist)
        exclude_schemas: Optional list of schemas to exclude (blacklist)
        max_tables: Optional cap on the number of reflected tables
    """

    def __init__(
        self,
        engine: Engine,
        include_schemas: list[str] | None = None,
        exclude_schemas: list[str] | None = None,
        *,
        max_tables: int | None = None,
        reflect_timeout_sec: int | None = None,
    ) -> None:
        self.engine = engine
        self.include_schemas = include_schemas
        self.exclude_schemas = exclude_schemas
        self.max_tables = max_tables
        self._reflect_timeout_sec = reflect_timeout_sec

    def list_schemas(self, inspector: Inspector) -> list[str]:
        """List database schemas with include/exclude filtering applied."""
        try:
            schemas = inspector.get_schema_names()
        except Exception as e:  # noqa: BLE001 - Fallback on any database error
            default = inspector.default_schema_name or "public"
            _logger.warning("Could not list schemas, falling back to %r: %s", default, e)
            schemas = [default]

        excluded_set = {
            schema.lower()
            for schema in (
                self.exclude_schemas or default_excluded_schemas(self.engine.dialect.name)
            )
        }
        filtered = [
            schema
            for schema in schemas
            if schema.lower() not in excluded_set and not schema.lower().startswith("db_")
        ]

        if self.include_schemas:
            allowed_set = {schema.lower() for schema in self.include_schemas}
            filtered = [schema for schema in filtered if schema.lower() in allowed_set]
        return filtered

    def read_schema(self) -> SchemaSnapshot:
        """Reflect tables, columns, primary keys and foreign keys.

        Individual tables that cannot be reflected are skipped with a warning;
        failing to connect or to list schemas raises `SchemaUnavailableError`.
        """
        tables: list[TableInfo] = []
        try:
            with self.engine.connect() as conn:
                self._apply_reflection_timeout(conn)
                insp: Inspector = sa.inspect(conn)
                schemas = self.list_schemas(insp)
                _logger.info("Reflecting %d schema(s)", len(schemas))

                for schema in schemas:
                    try:
                        table_names = insp.get_table_names(schema=schema)
                    except Exception as e:  # noqa: BLE001 - Skip schema on any database error
                        _logger.warning("Cannot list tables for schema %s: %s", schema, e)
                        continue

                    _logger.info("%s: %d tables", schema, len(table_names))
                    for name in table_names:
                        if self.max_tables is not None and len(tables) >= self.max_tables:
                            _logger.info(
                                "Reached reflection cap (max_tables=%s); stopping early",
                                self.max_tables,
                            )
                            return self._snapshot(tables)
                        table = self._reflect_table(insp, schema, name)
                        if table is not None:
                            tables.append(table)
        except SQLAlchemyError as e:
            msg = f"Failed to read database catalog: {e}"
            raise SchemaUnavailableError(msg) from e

        return self._snapshot(tables)

    # ---- internals ---------------------------------------------------------
    def _snapshot(self, tables: list[TableInfo]) -> SchemaSnapshot:
        return SchemaSnapshot(
            database_name=self.engine.url.database or "",
            tables=tuple(tables),
        )

    def _reflect_table(self, insp: Inspector, schema: str, table: str) -> TableInfo | None:
        _logger.debug("Reflecting table: %s.%s", schema, table)
        try:
            columns_metadata = insp.get_columns(table, schema=schema)
        except Exception as e:  # noqa: BLE001 - Skip table on any database error
            _logger.warning("Cannot get columns for %s.%s: %s", schema, table, e)
            return None

        try:
            pk_constraint = insp.get_pk_constraint(table, schema=schema)
            pk_cols = set(pk_constraint.get("constrained_columns", []) or [])
        except Exception as e:  # noqa: BLE001 - Continue without PK info
            _logger.debug("Cannot get PK for %s.%s: %s", schema, table, e)
            pk_cols = set()

        return TableInfo(
            name=table,
            schema_name=schema,
            columns=tuple(
                ColumnInfo(
                    name=col["name"],
                    data_type=str(col["type"]),
                    nullable=bool(col.get("nullable", True)),
                    is_primary_key=col["name"] in pk_cols,
                    max_length=_column_length(col["type"]),
                )
                for col in columns_metadata
            ),
            foreign_keys=tuple(self._get_foreign_keys(insp, schema, table)),
        )

    def _get_foreign_keys(self, insp: Inspector, schema: str, table: str) -> list[ForeignKeyInfo]:
        """Fetch foreign key relationships for a table with robust fallbacks."""
        try:
            fk_constraints = insp.get_foreign_keys(table, schema=schema)
        except Exception as e:  # noqa: BLE001 - Continue without FK info
            _logger.debug("Cannot get FKs for %s.%s: %s", schema, table, e)
            return []

        fks: list[ForeignKeyInfo] = []
        for fk in fk_constraints:
            ref_schema = fk.get("referred_schema") or schema
            ref_table = fk.get("referred_table")
            constrained_cols = fk.get("constrained_columns", [])
            referred_cols = fk.get("referred_columns", [])
            for local_col, ref_col in zip(constrained_cols, referred_cols, strict=False):
                fks.append(
                    ForeignKeyInfo(
                        column=local_col,
                        referenced_table=f"{ref_schema}.{ref_table}",
                        referenced_column=ref_col,
                    )
                )
        return fks

    def _apply_reflection_timeout(self, conn: Connection) -> None:
        """Apply a per-connection timeout suitable for metadata reflection.

        Best-effort, dialect-specific:
        - PostgreSQL: SET statement_timeout = <ms>
        - MySQL:      SET SESSION MAX_EXECUTION_TIME = <ms>
        - SQL Server: SET LOCK_TIMEOUT <ms>
        """
        timeout_sec = self._reflect_timeout_sec
        if not timeout_sec or timeout_sec <= 0:
            return
        try:
            dialect = self.engine.dialect.name
            ms = max(1, int(timeout_sec * 1000))
            if dialect == "postgresql":
                conn.execute(sa.text(f"SET statement_timeout = {ms}"))
            elif dialect in {"mysql", "mariadb"}:
                conn.execute(sa.text(f"SET SESSION MAX_EXECUTION_TIME = {ms}"))
            elif dialect == "mssql":
                conn.execute(sa.text(f"SET LOCK_TIMEOUT {ms}"))
        except Exception as e:  # noqa: BLE001 - best-effort guard
            _logger.debug("Could not apply reflection timeout: %s", e)
