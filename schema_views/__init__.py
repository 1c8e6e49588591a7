"""
schema-views - typed BigQuery views over a raw document changelog.

A document store mirrors every change into one append-only BigQuery table
(`<prefix>_raw_changelog`) whose `data` column holds the full document as a
JSON string. This package turns declarative schema files into two views per
schema:

- `<prefix>_schema_<name>_changelog`: every change row, with typed columns
- `<prefix>_schema_<name>_latest`: one row per live document, its newest state

and creates or replaces them idempotently.
"""

from __future__ import annotations

__version__ = "0.1.0"

# Public API exports
from schema_views.changelog import (
    ChangelogRow,
    ChangeType,
    build_changelog_row,
    latest_snapshot,
    validate_changelog_row,
)
from schema_views.compiler import CompiledViews, SchemaCompiler, ViewKind, view_name
from schema_views.config import Settings, get_settings
from schema_views.domain import FieldDefinition, FieldType, Schema, read_schemas
from schema_views.errors import (
    CompilationError,
    ConfigurationError,
    ContractViolation,
    MaterializationError,
    SchemaValidationError,
    SchemaViewsError,
)
from schema_views.materializer import ViewMaterializer, ViewOutcome
from schema_views.orchestrator import BatchReport, RunConfig, run, run_batch
from schema_views.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    # Configuration
    "Settings",
    "get_settings",
    # Schema model
    "FieldDefinition",
    "FieldType",
    "Schema",
    "read_schemas",
    # Compilation
    "CompiledViews",
    "SchemaCompiler",
    "ViewKind",
    "view_name",
    # Materialization and orchestration
    "ViewMaterializer",
    "ViewOutcome",
    "RunConfig",
    "BatchReport",
    "run",
    "run_batch",
    # Changelog contract
    "ChangeType",
    "ChangelogRow",
    "build_changelog_row",
    "latest_snapshot",
    "validate_changelog_row",
    # Errors
    "SchemaViewsError",
    "ConfigurationError",
    "SchemaValidationError",
    "CompilationError",
    "MaterializationError",
    "ContractViolation",
    # Logging
    "configure_logging",
    "get_logger",
]
