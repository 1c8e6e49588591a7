"""
Structural validation of schema trees.

Runs before any SQL is generated so an invalid schema never reaches the view
store. Errors carry the dotted path of the offending field.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence

from schema_views.domain.models import FieldDefinition, FieldType, Schema
from schema_views.errors import SchemaValidationError

COLUMN_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
MAX_COLUMN_NAME_LENGTH = 300

# BigQuery rejects column names starting with these prefixes.
RESERVED_COLUMN_PREFIXES = (
    "_partition",
    "_table_",
    "_file_",
    "_row_timestamp",
    "__root__",
    "_colidentifier",
)


def child_path(parent: Optional[str], name: str) -> str:
    return name if not parent else f"{parent}.{name}"


def element_path(path: str) -> str:
    return f"{path}[]"


def validate_column_name(name: str, path: str) -> None:
    if not name:
        raise SchemaValidationError("field name must not be empty", path or "<unnamed>")
    if len(name) > MAX_COLUMN_NAME_LENGTH:
        raise SchemaValidationError(
            f"field name exceeds {MAX_COLUMN_NAME_LENGTH} characters", path
        )
    if not COLUMN_NAME_PATTERN.match(name):
        raise SchemaValidationError(
            "field name must start with a letter or underscore and contain only "
            "letters, digits and underscores",
            path,
        )
    lowered = name.lower()
    for prefix in RESERVED_COLUMN_PREFIXES:
        if lowered.startswith(prefix):
            raise SchemaValidationError(f"field name uses reserved prefix '{prefix}'", path)


def validate_schema(schema: Schema, reserved_names: Iterable[str] = ()) -> None:
    """
    Validate a whole schema.

    `reserved_names` are the column names the generated views add next to the
    declared fields (metadata columns); top-level fields must not collide with
    them, case-insensitively.
    """
    reserved = {name.lower(): name for name in reserved_names}
    for field in schema.fields:
        taken = reserved.get(field.name.lower())
        if taken is not None:
            raise SchemaValidationError(
                f"field name collides with generated column '{taken}'", field.name
            )
    validate_fields(schema.fields, parent=None)


def validate_fields(fields: Sequence[FieldDefinition], parent: Optional[str]) -> None:
    seen: dict[str, str] = {}
    for field in fields:
        path = child_path(parent, field.name)
        validate_column_name(field.name, path)
        previous = seen.get(field.name.lower())
        if previous is not None:
            raise SchemaValidationError(
                f"field name collides with '{previous}' (names are case-insensitive)", path
            )
        seen[field.name.lower()] = field.name
        validate_field(field, path)


def validate_field(field: FieldDefinition, path: str) -> None:
    if field.type is FieldType.MAP:
        if field.items is not None:
            raise SchemaValidationError("'items' is only allowed on array fields", path)
        if not field.fields:
            raise SchemaValidationError("map fields must declare at least one nested field", path)
        validate_fields(field.fields, parent=path)
    elif field.type is FieldType.ARRAY:
        if field.fields:
            raise SchemaValidationError(
                "array fields declare their element type with 'items'", path
            )
        element = field.element
        if element.type is FieldType.ARRAY:
            raise SchemaValidationError("arrays of arrays are not supported", element_path(path))
        validate_field(element, element_path(path))
    else:
        if field.fields:
            raise SchemaValidationError(
                f"'fields' is not allowed on {field.type.value} fields", path
            )
        if field.items is not None:
            raise SchemaValidationError("'items' is only allowed on array fields", path)


__all__ = [
    "COLUMN_NAME_PATTERN",
    "child_path",
    "element_path",
    "validate_column_name",
    "validate_schema",
    "validate_fields",
    "validate_field",
]
