"""
Type-to-SQL mapping: one field declaration to one BigQuery expression.

The raw changelog stores each document as JSON text in the STRING column
`data`. Every declared field is read out of that text with JSONPath and cast
to its column type. Value encoding policy:

- string / reference: JSON_EXTRACT_SCALAR as STRING (references are document
  path strings).
- number: SAFE_CAST to FLOAT64; accepts JSON numbers and numeric strings.
- boolean: SAFE_CAST to BOOL; accepts JSON booleans and "true"/"false".
- timestamp: first match of a Firestore `{_seconds, _nanoseconds}` object,
  an ISO-8601 string, or epoch seconds (number or numeric string).
- geopoint: Firestore `{_latitude, _longitude}` object as GEOGRAPHY.
- map: STRUCT of the nested fields.
- array: ARRAY in source order; NULL elements are dropped because BigQuery
  arrays cannot hold NULL.

A value that does not match the policy reads as NULL rather than failing
the whole query; the untouched JSON is still in the raw table.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

from schema_views.domain.models import FieldDefinition, FieldType
from schema_views.domain.validation import COLUMN_NAME_PATTERN, child_path, element_path
from schema_views.errors import CompilationError, SchemaValidationError

ROOT_PATH = "$"

PrimitiveCompiler = Callable[[str, str], str]


def quote_identifier(name: str) -> str:
    if not COLUMN_NAME_PATTERN.match(name):
        raise CompilationError(f"'{name}' is not a valid column identifier")
    return f"`{name}`"


def json_child_path(path: str, name: str) -> str:
    if not COLUMN_NAME_PATTERN.match(name):
        raise CompilationError(f"'{name}' cannot be addressed with a JSONPath member")
    return f"{path}.{name}"


def _extract_scalar(source: str, path: str) -> str:
    return f"JSON_EXTRACT_SCALAR({source}, '{path}')"


def _compile_string(source: str, path: str) -> str:
    return _extract_scalar(source, path)


def _compile_number(source: str, path: str) -> str:
    return f"SAFE_CAST({_extract_scalar(source, path)} AS FLOAT64)"


def _compile_boolean(source: str, path: str) -> str:
    return f"SAFE_CAST({_extract_scalar(source, path)} AS BOOL)"


def _compile_timestamp(source: str, path: str) -> str:
    seconds = f"SAFE_CAST({_extract_scalar(source, path + '._seconds')} AS INT64)"
    nanos = f"IFNULL(SAFE_CAST({_extract_scalar(source, path + '._nanoseconds')} AS INT64), 0)"
    scalar = _extract_scalar(source, path)
    # Out-of-range values read as NULL; plain INT64 overflow would abort the query.
    object_micros = f"SAFE_ADD(SAFE_MULTIPLY({seconds}, 1000000), DIV({nanos}, 1000))"
    epoch_micros = f"SAFE_CAST(SAFE_MULTIPLY(SAFE_CAST({scalar} AS FLOAT64), 1000000) AS INT64)"
    return (
        "COALESCE("
        f"SAFE.TIMESTAMP_MICROS({object_micros}), "
        f"SAFE_CAST({scalar} AS TIMESTAMP), "
        f"SAFE.TIMESTAMP_MICROS({epoch_micros})"
        ")"
    )


def _compile_geopoint(source: str, path: str) -> str:
    longitude = f"SAFE_CAST({_extract_scalar(source, path + '._longitude')} AS FLOAT64)"
    latitude = f"SAFE_CAST({_extract_scalar(source, path + '._latitude')} AS FLOAT64)"
    return f"SAFE.ST_GEOGPOINT({longitude}, {latitude})"


_PRIMITIVE_COMPILERS: Dict[FieldType, PrimitiveCompiler] = {
    FieldType.STRING: _compile_string,
    FieldType.NUMBER: _compile_number,
    FieldType.BOOLEAN: _compile_boolean,
    FieldType.TIMESTAMP: _compile_timestamp,
    FieldType.REFERENCE: _compile_string,
    FieldType.GEOPOINT: _compile_geopoint,
}


def compile_field(
    source: str,
    path: str,
    field: FieldDefinition,
    *,
    field_path: Optional[str] = None,
    depth: int = 0,
) -> str:
    """
    Compile `field` to an expression reading JSONPath `path` out of `source`.

    Parameters
    ----------
    source : str
        SQL expression holding JSON text (`data` at top level, an UNNEST
        alias inside arrays).
    path : str
        JSONPath of the field inside `source`, e.g. ``$.address.city``.
    field : FieldDefinition
        The declaration to compile.
    field_path : str, optional
        Dotted schema path used in error messages; defaults to the name.
    depth : int
        Array nesting depth, used to keep UNNEST aliases unique.
    """
    label = field_path or field.name
    primitive = _PRIMITIVE_COMPILERS.get(field.type)
    if primitive is not None:
        return primitive(source, path)
    if field.type is FieldType.MAP:
        return _compile_map(source, path, field, label, depth)
    if field.type is FieldType.ARRAY:
        return _compile_array(source, path, field, label, depth)
    raise SchemaValidationError(f"unsupported type '{field.type}'", label)


def _compile_map(
    source: str, path: str, field: FieldDefinition, label: str, depth: int
) -> str:
    if not field.fields:
        raise SchemaValidationError("map fields must declare at least one nested field", label)
    members = [
        compile_field(
            source,
            json_child_path(path, child.name),
            child,
            field_path=child_path(label, child.name),
            depth=depth,
        )
        + f" AS {quote_identifier(child.name)}"
        for child in field.fields
    ]
    return f"STRUCT({', '.join(members)})"


def _compile_array(
    source: str, path: str, field: FieldDefinition, label: str, depth: int
) -> str:
    element = field.element
    if element.type is FieldType.ARRAY:
        raise SchemaValidationError("arrays of arrays are not supported", element_path(label))
    level = depth + 1
    item = f"item_{level}"
    offset = f"offset_{level}"
    value = f"element_{level}"
    element_sql = compile_field(
        item, ROOT_PATH, element, field_path=element_path(label), depth=level
    )
    return (
        f"ARRAY(SELECT {value} FROM ("
        f"SELECT {element_sql} AS {value}, {offset} "
        f"FROM UNNEST(JSON_EXTRACT_ARRAY({source}, '{path}')) AS {item} WITH OFFSET AS {offset}"
        f") WHERE {value} IS NOT NULL ORDER BY {offset})"
    )


def compile_top_level_field(field: FieldDefinition, source: str = "data") -> str:
    """Compile a top-level field to an aliased select-list item."""
    expression = compile_field(source, json_child_path(ROOT_PATH, field.name), field)
    return f"{expression} AS {quote_identifier(field.name)}"


__all__ = [
    "ROOT_PATH",
    "quote_identifier",
    "json_child_path",
    "compile_field",
    "compile_top_level_field",
]
