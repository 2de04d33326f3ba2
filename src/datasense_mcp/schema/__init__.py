"""Schema snapshot models, catalog reflection and prompt rendering."""

from __future__ import annotations

from .models import ColumnInfo, ForeignKeyInfo, SchemaSnapshot, SchemaStatus, TableInfo
from .reflection import CatalogReader, SqlAlchemyCatalogReader
from .rendering import render_schema

__all__ = [
    "CatalogReader",
    "ColumnInfo",
    "ForeignKeyInfo",
    "SchemaSnapshot",
    "SchemaStatus",
    "SqlAlchemyCatalogReader",
    "TableInfo",
    "render_schema",
]
