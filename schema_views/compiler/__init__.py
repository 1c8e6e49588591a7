"""
Compiler package for schema-views.

Turns validated schemas into BigQuery Standard SQL: `fields` maps one field
declaration to an expression, `views` assembles the changelog and latest
views, `naming` owns the deterministic view names.
"""

from schema_views.compiler.fields import compile_field
from schema_views.compiler.naming import ViewKind, raw_changelog_table_name, view_name
from schema_views.compiler.views import METADATA_COLUMNS, CompiledViews, SchemaCompiler

__all__ = [
    "compile_field",
    "ViewKind",
    "raw_changelog_table_name",
    "view_name",
    "METADATA_COLUMNS",
    "CompiledViews",
    "SchemaCompiler",
]
