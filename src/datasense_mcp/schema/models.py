"""Data models for database schema snapshots.

A `SchemaSnapshot` is the immutable structural picture of the target
database that the SQL generator embeds in its prompts. Snapshots are either
reflected from the live catalog by the schema cache or supplied directly by
an SDK client with a generation request.

Models:
- ColumnInfo: Name, type and key/nullability flags of one column
- ForeignKeyInfo: One column-level foreign key reference
- TableInfo: A table with its columns and foreign keys
- SchemaSnapshot: Ordered, uniquely named set of tables
- SchemaStatus: Refresh status reported by the schema tools
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ColumnInfo(BaseModel):
    """Structural metadata about a database column."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Column name as defined in the database")
    data_type: str = Field(description="SQL data type string")
    nullable: bool = Field(default=True, description="Whether the column accepts NULL values")
    is_primary_key: bool = Field(default=False, description="Part of the primary key")
    max_length: int | None = Field(
        default=None, description="Character length for sized string types, when known"
    )


class ForeignKeyInfo(BaseModel):
    """Foreign key reference from a local column to `referenced_table.referenced_column`."""

    model_config = ConfigDict(frozen=True)

    column: str = Field(description="Local column holding the reference")
    referenced_table: str = Field(description="Referenced table, 'schema.table' when known")
    referenced_column: str = Field(description="Referenced column")


class TableInfo(BaseModel):
    """A table with its columns and outgoing foreign keys."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Table name as defined in the database")
    schema_name: str | None = Field(
        default=None, description="Owning schema (e.g. 'dbo', 'public'); None when implicit"
    )
    columns: tuple[ColumnInfo, ...] = Field(default=(), description="Columns in ordinal order")
    foreign_keys: tuple[ForeignKeyInfo, ...] = Field(
        default=(), description="Column-level foreign key references"
    )

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.name}" if self.schema_name else self.name

    @property
    def primary_key(self) -> list[str]:
        return [c.name for c in self.columns if c.is_primary_key]


class SchemaSnapshot(BaseModel):
    """Immutable structural snapshot of a database.

    Table names are unique within a snapshot (compared on the qualified,
    case-insensitive name). A refresh never mutates a snapshot; it builds and
    publishes a new one.
    """

    model_config = ConfigDict(frozen=True)

    database_name: str = Field(default="", description="Logical database name")
    tables: tuple[TableInfo, ...] = Field(default=(), description="Tables in catalog order")

    @model_validator(mode="after")
    def _unique_table_names(self) -> SchemaSnapshot:
        seen: set[str] = set()
        for table in self.tables:
            key = table.qualified_name.lower()
            if key in seen:
                msg = f"Duplicate table in schema snapshot: {table.qualified_name}"
                raise ValueError(msg)
            seen.add(key)
        return self

    @classmethod
    def empty(cls, database_name: str = "") -> SchemaSnapshot:
        return cls(database_name=database_name)

    @property
    def is_empty(self) -> bool:
        return not self.tables

    def table(self, name: str) -> TableInfo | None:
        """Look up a table by qualified or bare name (case-insensitive)."""
        wanted = name.lower()
        for t in self.tables:
            if t.qualified_name.lower() == wanted or t.name.lower() == wanted:
                return t
        return None


class SchemaStatus(BaseModel):
    """Refresh status of the schema cache, as reported to clients."""

    phase: Literal["IDLE", "REFRESHING", "READY", "DEGRADED", "STOPPED"]
    attempts: int = 0
    started_at: float | None = None
    completed_at: float | None = None
    error_message: str | None = None
    table_count: int | None = None
    database_name: str | None = None
    # Short text an agent can relay to the user
    description: str | None = Field(default=None, description="Short status description")
