"""Textual rendering of schema snapshots for language-model prompts."""

from __future__ import annotations

from .models import SchemaSnapshot

EMPTY_SCHEMA_TEXT = "(no schema available; infer table and column names from the question)"


def render_schema(snapshot: SchemaSnapshot) -> str:
    """Render tables, typed columns and relationships as indented text.

    Example:
        Table: dbo.users
          Columns:
            - id: int (PK) NOT NULL
            - name: nvarchar(100) NULL
          Relationships:
            - dbo.users.team_id -> dbo.teams.id
    """
    if snapshot.is_empty:
        return EMPTY_SCHEMA_TEXT

    lines: list[str] = []
    for table in snapshot.tables:
        lines.append(f"Table: {table.qualified_name}")
        lines.append("  Columns:")
        for col in table.columns:
            sized = col.max_length and col.max_length > 0 and "(" not in col.data_type
            size = f"({col.max_length})" if sized else ""
            pk = " (PK)" if col.is_primary_key else ""
            null = " NULL" if col.nullable else " NOT NULL"
            lines.append(f"    - {col.name}: {col.data_type}{size}{pk}{null}")
        if table.foreign_keys:
            lines.append("  Relationships:")
            for fk in table.foreign_keys:
                lines.append(
                    f"    - {table.qualified_name}.{fk.column} -> "
                    f"{fk.referenced_table}.{fk.referenced_column}"
                )
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"
