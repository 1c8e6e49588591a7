"""
Domain package for schema-views.

Exports the schema model, its structural validation and the schema source
loader. Keep this package free of SQL generation and I/O against BigQuery.
"""

from schema_views.domain.loader import LoadResult, parse_schema_document, read_schemas
from schema_views.domain.models import FieldDefinition, FieldType, Schema
from schema_views.domain.validation import validate_schema

__all__ = [
    "FieldDefinition",
    "FieldType",
    "Schema",
    "LoadResult",
    "parse_schema_document",
    "read_schemas",
    "validate_schema",
]
