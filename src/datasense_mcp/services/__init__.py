"""Services package for datasense-mcp.

This package contains the long-lived, process-wide pieces of the server:
configuration, the schema cache and its refresh state, and the registry
that wires the orchestrators together.

Main Components:
- ConfigService: Configuration and database connection management
- SchemaCache: Single-writer holder of the published schema snapshot
"""

from .config_service import ConfigService
from .schema_cache import SchemaCache

__all__ = [
    "ConfigService",
    "SchemaCache",
]
