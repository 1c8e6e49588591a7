"""
Schema source loading.

Each schema lives in its own JSON file; the schema name is the file stem.
A file holds either ``{"fields": [...]}`` or a bare list of field
declarations ``{"name", "type", "fields"?, "items"?}``.

Arrays declare their element with ``items``. As a shorthand an array with
``fields`` (and no ``items``) holds maps with those fields, and an array
with neither holds strings.

Usage:
    from schema_views.domain.loader import read_schemas

    result = read_schemas(["schemas/", "extra/*.json"])
    for name, schema in result.schemas.items():
        ...
"""

from __future__ import annotations

import glob
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from schema_views.domain.models import FieldDefinition, FieldType, Schema
from schema_views.domain.validation import child_path, element_path
from schema_views.errors import SchemaValidationError, SchemaViewsError
from schema_views.utils.logging import get_logger

log = get_logger(__name__)

SCHEMA_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
_ALLOWED_KEYS = frozenset({"name", "type", "fields", "items", "description"})
_GLOB_CHARS = frozenset("*?[")


@dataclass
class LoadResult:
    """Schemas that loaded cleanly plus per-name failures."""

    schemas: Dict[str, Schema] = field(default_factory=dict)
    failures: Dict[str, SchemaViewsError] = field(default_factory=dict)


def split_path_arguments(values: Iterable[str]) -> List[str]:
    """Flatten repeated and comma separated path arguments."""
    paths: List[str] = []
    for value in values:
        paths.extend(part.strip() for part in value.split(",") if part.strip())
    return paths


def expand_schema_paths(patterns: Iterable[str]) -> List[Path]:
    """Resolve files, directories and glob patterns into schema files."""
    resolved: List[Path] = []
    seen: set[Path] = set()
    for pattern in patterns:
        if _GLOB_CHARS.intersection(pattern):
            candidates = [Path(match) for match in sorted(glob.glob(pattern, recursive=True))]
        else:
            path = Path(pattern)
            if path.is_dir():
                candidates = sorted(path.glob("*.json"))
            elif path.exists():
                candidates = [path]
            else:
                log.warning("Schema path does not exist", extra={"schema_path": pattern})
                candidates = []
        for candidate in candidates:
            if not candidate.is_file():
                continue
            key = candidate.resolve()
            if key not in seen:
                seen.add(key)
                resolved.append(candidate)
    return resolved


def read_schemas(patterns: Iterable[str]) -> LoadResult:
    """
    Load every schema file matched by `patterns`.

    A malformed file fails its own schema name only. Two files resolving to
    the same schema name fail that name.
    """
    result = LoadResult()
    sources: Dict[str, Path] = {}
    for path in expand_schema_paths(patterns):
        name = path.stem
        if name in sources:
            result.schemas.pop(name, None)
            result.failures[name] = SchemaValidationError(
                f"schema name '{name}' is defined by more than one file "
                f"({sources[name]} and {path})"
            )
            log.error("Duplicate schema name", extra={"schema": name, "schema_path": str(path)})
            continue
        sources[name] = path
        try:
            result.schemas[name] = load_schema_file(path)
            log.debug("Loaded schema", extra={"schema": name, "schema_path": str(path)})
        except SchemaViewsError as exc:
            log.error(
                "Failed to load schema",
                extra={"schema": name, "schema_path": str(path), "error": str(exc)},
            )
            result.failures[name] = exc
    return result


def load_schema_file(path: Path | str) -> Schema:
    schema_path = Path(path)
    name = schema_path.stem
    if not SCHEMA_NAME_PATTERN.match(name):
        raise SchemaValidationError(
            f"schema name '{name}' must contain only letters, digits and underscores"
        )
    try:
        document = json.loads(schema_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SchemaValidationError(f"{schema_path} is not valid JSON: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise SchemaValidationError(f"{schema_path} is not UTF-8 text: {exc}") from exc
    except RecursionError as exc:
        raise SchemaValidationError(f"{schema_path} is nested too deeply") from exc
    except OSError as exc:
        raise SchemaValidationError(f"cannot read {schema_path}: {exc}") from exc
    try:
        return parse_schema_document(document, source_path=str(schema_path))
    except RecursionError as exc:
        raise SchemaValidationError(f"{schema_path} is nested too deeply") from exc


def parse_schema_document(document: Any, source_path: Optional[str] = None) -> Schema:
    """Build a Schema from decoded JSON."""
    if isinstance(document, Mapping):
        declarations = document.get("fields", [])
    else:
        declarations = document
    if not isinstance(declarations, list):
        raise SchemaValidationError("schema must be a list of fields or an object with 'fields'")
    fields = tuple(parse_field(item, parent=None) for item in declarations)
    return Schema(fields=fields, source_path=source_path)


def parse_field(declaration: Any, parent: Optional[str]) -> FieldDefinition:
    if not isinstance(declaration, Mapping):
        raise SchemaValidationError("field declarations must be objects", parent)
    name = declaration.get("name")
    if not isinstance(name, str) or not name:
        raise SchemaValidationError("field declaration requires a non-empty 'name'", parent)
    path = child_path(parent, name)
    _reject_unknown_keys(declaration, path)
    field_type = _parse_type(declaration.get("type"), path)
    return _build_field(name, field_type, declaration, path)


def _parse_element(declaration: Any, name: str, path: str) -> FieldDefinition:
    if isinstance(declaration, str):
        declaration = {"type": declaration}
    if not isinstance(declaration, Mapping):
        raise SchemaValidationError("'items' must be an object or a type name", path)
    _reject_unknown_keys(declaration, path)
    field_type = _parse_type(declaration.get("type"), path)
    return _build_field(name, field_type, declaration, path)


def _build_field(
    name: str, field_type: FieldType, declaration: Mapping[str, Any], path: str
) -> FieldDefinition:
    raw_fields = declaration.get("fields")
    raw_items = declaration.get("items")
    if raw_fields is not None and not isinstance(raw_fields, list):
        raise SchemaValidationError("'fields' must be a list", path)

    if field_type is FieldType.ARRAY:
        if raw_items is not None:
            if raw_fields:
                raise SchemaValidationError("array fields take either 'items' or 'fields'", path)
            items = _parse_element(raw_items, name, element_path(path))
        elif raw_fields:
            items = _build_field(name, FieldType.MAP, {"fields": raw_fields}, element_path(path))
        else:
            items = FieldDefinition(name=name, type=FieldType.STRING)
        return FieldDefinition(name=name, type=field_type, items=items)

    if raw_items is not None:
        raise SchemaValidationError("'items' is only allowed on array fields", path)
    children = tuple(parse_field(child, parent=path) for child in raw_fields or [])
    return FieldDefinition(name=name, type=field_type, fields=children)


def _parse_type(value: Any, path: str) -> FieldType:
    if not isinstance(value, str):
        raise SchemaValidationError("field declaration requires a string 'type'", path)
    try:
        return FieldType(value.lower())
    except ValueError:
        supported = ", ".join(member.value for member in FieldType)
        raise SchemaValidationError(
            f"unsupported type '{value}' (supported: {supported})", path
        ) from None


def _reject_unknown_keys(declaration: Mapping[str, Any], path: str) -> None:
    unknown = sorted(set(declaration) - _ALLOWED_KEYS)
    if unknown:
        raise SchemaValidationError(f"unknown keys: {', '.join(unknown)}", path)


__all__ = [
    "LoadResult",
    "SCHEMA_NAME_PATTERN",
    "split_path_arguments",
    "expand_schema_paths",
    "read_schemas",
    "load_schema_file",
    "parse_schema_document",
    "parse_field",
]
