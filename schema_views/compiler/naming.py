"""
Deterministic naming of the raw changelog table and the generated views.

View names depend only on (table name prefix, schema name, view kind), so
recompiling a schema always targets the same views and replaces them in
place. Prefixes and schema names are restricted to [A-Za-z0-9_]; with the
distinct `_changelog` / `_latest` suffixes and the `_schema_` infix this
keeps every generated name unique and different from the raw table.
"""

from __future__ import annotations

import re
from enum import Enum

from schema_views.errors import ConfigurationError

BIGQUERY_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
PROJECT_ID_PATTERN = re.compile(r"^[^/`\s]+$")

RAW_CHANGELOG_SUFFIX = "raw_changelog"


class ViewKind(str, Enum):
    RAW = "changelog"
    LATEST = "latest"


def validate_project_id(project_id: str) -> str:
    if not project_id or not PROJECT_ID_PATTERN.match(project_id):
        raise ConfigurationError(f"Invalid project ID: {project_id!r}")
    return project_id


def validate_bigquery_name(value: str, label: str) -> str:
    if not value or not BIGQUERY_NAME_PATTERN.match(value):
        raise ConfigurationError(
            f"The {label} must only contain letters, digits or underscores (got {value!r})"
        )
    return value


def raw_changelog_table_name(table_name_prefix: str) -> str:
    return f"{table_name_prefix}_{RAW_CHANGELOG_SUFFIX}"


def view_name(table_name_prefix: str, schema_name: str, kind: ViewKind) -> str:
    validate_bigquery_name(table_name_prefix, "table name prefix")
    validate_bigquery_name(schema_name, "schema name")
    return f"{table_name_prefix}_schema_{schema_name}_{kind.value}"


def qualified_table(project_id: str, dataset_id: str, table_name: str) -> str:
    return f"`{project_id}.{dataset_id}.{table_name}`"


__all__ = [
    "ViewKind",
    "RAW_CHANGELOG_SUFFIX",
    "validate_project_id",
    "validate_bigquery_name",
    "raw_changelog_table_name",
    "view_name",
    "qualified_table",
]
