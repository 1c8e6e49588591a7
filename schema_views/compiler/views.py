"""
Schema compiler: a schema to the SQL of its two read-side views.

- The changelog view exposes every raw row with `data` exploded into one
  typed column per top-level field.
- The latest view keeps, per `document_name`, the row with the greatest
  (timestamp, event_id) and drops documents whose last row is a DELETE.

Usage:
    from schema_views.compiler.views import SchemaCompiler

    compiler = SchemaCompiler("my-project", "firestore_export", "users")
    compiled = compiler.compile("profile", schema)
    print(compiled.latest_view_sql)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from schema_views.compiler.fields import compile_top_level_field, quote_identifier
from schema_views.compiler.naming import (
    ViewKind,
    qualified_table,
    raw_changelog_table_name,
    validate_bigquery_name,
    validate_project_id,
    view_name,
)
from schema_views.domain.models import Schema
from schema_views.domain.validation import validate_column_name, validate_schema
from schema_views.errors import CompilationError, ConfigurationError, SchemaValidationError
from schema_views.utils.logging import get_logger

log = get_logger(__name__)

METADATA_COLUMNS: Tuple[str, ...] = (
    "document_name",
    "document_id",
    "timestamp",
    "event_id",
    "operation",
)
RANK_COLUMN = "_latest_rank"
CHANGELOG_ALIAS = "changelog"
DELETE_OPERATION = "DELETE"

_INDENT = "  "


@dataclass(frozen=True)
class CompiledViews:
    """SQL and target names for one schema's views."""

    schema_name: str
    raw_view_name: str
    raw_view_sql: str
    latest_view_name: str
    latest_view_sql: str

    def views(self) -> List[Tuple[str, str]]:
        """(name, sql) pairs in materialization order."""
        return [
            (self.raw_view_name, self.raw_view_sql),
            (self.latest_view_name, self.latest_view_sql),
        ]


class SchemaCompiler:
    """
    Compiles schemas against one raw changelog table.

    Parameters
    ----------
    project_id : str
        Project holding the dataset.
    dataset_id : str
        Dataset holding the raw changelog table and the generated views.
    table_name_prefix : str
        Prefix shared by the raw table (`<prefix>_raw_changelog`) and views.
    partition_field : str, optional
        Partitioning column of the raw table to pass through to the views.
    """

    def __init__(
        self,
        project_id: str,
        dataset_id: str,
        table_name_prefix: str,
        partition_field: Optional[str] = None,
    ) -> None:
        self.project_id = validate_project_id(project_id)
        self.dataset_id = validate_bigquery_name(dataset_id, "dataset ID")
        self.table_name_prefix = validate_bigquery_name(table_name_prefix, "table name prefix")
        if partition_field is not None:
            try:
                validate_column_name(partition_field, partition_field)
            except SchemaValidationError as exc:
                raise ConfigurationError(f"Invalid partition field: {exc}") from exc
            if partition_field.lower() in {name.lower() for name in METADATA_COLUMNS}:
                raise ConfigurationError(
                    f"Partition field {partition_field!r} duplicates a metadata column"
                )
        self.partition_field = partition_field

    @property
    def raw_table(self) -> str:
        return qualified_table(
            self.project_id, self.dataset_id, raw_changelog_table_name(self.table_name_prefix)
        )

    @property
    def metadata_columns(self) -> Tuple[str, ...]:
        if self.partition_field:
            return METADATA_COLUMNS + (self.partition_field,)
        return METADATA_COLUMNS

    @property
    def reserved_columns(self) -> Tuple[str, ...]:
        return self.metadata_columns + (RANK_COLUMN,)

    def compile(self, schema_name: str, schema: Schema) -> CompiledViews:
        """
        Validate `schema` and build both view definitions.

        Raises
        ------
        SchemaValidationError
            The schema is structurally invalid.
        CompilationError
            SQL generation broke an internal invariant.
        """
        try:
            raw_name = view_name(self.table_name_prefix, schema_name, ViewKind.RAW)
            latest_name = view_name(self.table_name_prefix, schema_name, ViewKind.LATEST)
        except ConfigurationError as exc:
            raise SchemaValidationError(str(exc)) from exc
        validate_schema(schema, reserved_names=self.reserved_columns)

        source = f"{CHANGELOG_ALIAS}.data"
        field_items = [compile_top_level_field(field, source=source) for field in schema.fields]
        metadata_items = [
            f"{CHANGELOG_ALIAS}.{quote_identifier(column)}" for column in self.metadata_columns
        ]
        projection = metadata_items + field_items
        if len(projection) != len(self.metadata_columns) + len(schema.fields):
            raise CompilationError(f"Projection for schema '{schema_name}' lost columns")

        raw_sql = self._raw_view_sql(projection)
        latest_sql = self._latest_view_sql(projection, schema)
        log.debug(
            "Compiled schema views",
            extra={
                "schema": schema_name,
                "fields": len(schema.fields),
                "raw_view": raw_name,
                "latest_view": latest_name,
            },
        )
        return CompiledViews(
            schema_name=schema_name,
            raw_view_name=raw_name,
            raw_view_sql=raw_sql,
            latest_view_name=latest_name,
            latest_view_sql=latest_sql,
        )

    def _from_clause(self, indent: str = "") -> List[str]:
        return [f"{indent}FROM", f"{indent}{_INDENT}{self.raw_table} AS {CHANGELOG_ALIAS}"]

    def _raw_view_sql(self, projection: List[str]) -> str:
        lines = ["SELECT"]
        lines.extend(_select_list(projection, _INDENT))
        lines.extend(self._from_clause())
        return "\n".join(lines)

    def _latest_view_sql(self, projection: List[str], schema: Schema) -> str:
        rank = (
            "ROW_NUMBER() OVER ("
            f"PARTITION BY {CHANGELOG_ALIAS}.document_name "
            f"ORDER BY {CHANGELOG_ALIAS}.timestamp DESC, "
            f"{CHANGELOG_ALIAS}.event_id DESC, "
            f"{CHANGELOG_ALIAS}.data DESC"
            f") AS {RANK_COLUMN}"
        )
        outer_columns = [
            quote_identifier(column)
            for column in list(self.metadata_columns) + schema.field_names
        ]
        lines = ["SELECT"]
        lines.extend(_select_list(outer_columns, _INDENT))
        lines.append("FROM (")
        lines.append(f"{_INDENT}SELECT")
        lines.extend(_select_list(projection + [rank], _INDENT * 2))
        lines.extend(self._from_clause(_INDENT))
        lines.append(")")
        lines.append("WHERE")
        lines.append(f"{_INDENT}{RANK_COLUMN} = 1")
        lines.append(f"{_INDENT}AND operation != '{DELETE_OPERATION}'")
        return "\n".join(lines)


def _select_list(items: List[str], indent: str) -> List[str]:
    return [
        f"{indent}{item}{',' if position < len(items) - 1 else ''}"
        for position, item in enumerate(items)
    ]


__all__ = [
    "METADATA_COLUMNS",
    "RANK_COLUMN",
    "CompiledViews",
    "SchemaCompiler",
]
