from __future__ import annotations

import pytest

from schema_views.compiler.fields import (
    compile_field,
    compile_top_level_field,
    json_child_path,
    quote_identifier,
)
from schema_views.domain.models import FieldDefinition, FieldType
from schema_views.errors import CompilationError, SchemaValidationError

SOURCE = "changelog.data"


def _field(name: str, field_type: FieldType, **kwargs) -> FieldDefinition:
    return FieldDefinition(name=name, type=field_type, **kwargs)


def test_string_and_reference_read_scalar_text() -> None:
    string_sql = compile_field(SOURCE, "$.name", _field("name", FieldType.STRING))
    reference_sql = compile_field(SOURCE, "$.owner", _field("owner", FieldType.REFERENCE))

    assert string_sql == "JSON_EXTRACT_SCALAR(changelog.data, '$.name')"
    assert reference_sql == "JSON_EXTRACT_SCALAR(changelog.data, '$.owner')"


def test_number_and_boolean_use_safe_casts() -> None:
    number_sql = compile_field(SOURCE, "$.age", _field("age", FieldType.NUMBER))
    boolean_sql = compile_field(SOURCE, "$.active", _field("active", FieldType.BOOLEAN))

    assert number_sql == "SAFE_CAST(JSON_EXTRACT_SCALAR(changelog.data, '$.age') AS FLOAT64)"
    assert boolean_sql == "SAFE_CAST(JSON_EXTRACT_SCALAR(changelog.data, '$.active') AS BOOL)"


def test_timestamp_accepts_object_iso_and_epoch_encodings() -> None:
    sql = compile_field(SOURCE, "$.created", _field("created", FieldType.TIMESTAMP))

    assert sql.startswith("COALESCE(")
    assert "'$.created._seconds'" in sql
    assert "'$.created._nanoseconds'" in sql
    assert "SAFE_CAST(JSON_EXTRACT_SCALAR(changelog.data, '$.created') AS TIMESTAMP)" in sql
    assert "SAFE_MULTIPLY(SAFE_CAST(JSON_EXTRACT_SCALAR(changelog.data, '$.created') AS FLOAT64)" in sql
    # Object form is tried first.
    assert sql.index("_seconds") < sql.index("AS TIMESTAMP")


def test_timestamp_arithmetic_cannot_overflow() -> None:
    sql = compile_field(SOURCE, "$.created", _field("created", FieldType.TIMESTAMP))

    assert (
        "SAFE.TIMESTAMP_MICROS(SAFE_ADD(SAFE_MULTIPLY("
        "SAFE_CAST(JSON_EXTRACT_SCALAR(changelog.data, '$.created._seconds') AS INT64), 1000000), "
        "DIV(IFNULL(SAFE_CAST(JSON_EXTRACT_SCALAR(changelog.data, '$.created._nanoseconds') "
        "AS INT64), 0), 1000)))"
    ) in sql
    assert " * " not in sql
    assert " + " not in sql


def test_geopoint_builds_geography_longitude_first() -> None:
    sql = compile_field(SOURCE, "$.location", _field("location", FieldType.GEOPOINT))

    assert sql.startswith("SAFE.ST_GEOGPOINT(")
    assert sql.index("_longitude") < sql.index("_latitude")


def test_map_compiles_to_struct_in_declaration_order() -> None:
    address = _field(
        "address",
        FieldType.MAP,
        fields=(_field("zip", FieldType.STRING), _field("city", FieldType.STRING)),
    )

    sql = compile_field(SOURCE, "$.address", address)

    assert sql == (
        "STRUCT("
        "JSON_EXTRACT_SCALAR(changelog.data, '$.address.zip') AS `zip`, "
        "JSON_EXTRACT_SCALAR(changelog.data, '$.address.city') AS `city`)"
    )


def test_array_preserves_order_and_drops_nulls() -> None:
    tags = _field("tags", FieldType.ARRAY, items=_field("tags", FieldType.NUMBER))

    sql = compile_field(SOURCE, "$.tags", tags)

    assert sql == (
        "ARRAY(SELECT element_1 FROM ("
        "SELECT SAFE_CAST(JSON_EXTRACT_SCALAR(item_1, '$') AS FLOAT64) AS element_1, offset_1 "
        "FROM UNNEST(JSON_EXTRACT_ARRAY(changelog.data, '$.tags')) AS item_1 WITH OFFSET AS offset_1"
        ") WHERE element_1 IS NOT NULL ORDER BY offset_1)"
    )


def test_array_of_maps_containing_arrays_uses_distinct_aliases() -> None:
    lines = _field(
        "lines",
        FieldType.ARRAY,
        items=_field(
            "lines",
            FieldType.MAP,
            fields=(
                _field("sku", FieldType.STRING),
                _field("codes", FieldType.ARRAY, items=_field("codes", FieldType.STRING)),
            ),
        ),
    )

    sql = compile_field(SOURCE, "$.lines", lines)

    assert "AS item_1 WITH OFFSET AS offset_1" in sql
    assert "JSON_EXTRACT_ARRAY(item_1, '$.codes')) AS item_2 WITH OFFSET AS offset_2" in sql
    assert "JSON_EXTRACT_SCALAR(item_1, '$.sku') AS `sku`" in sql


def test_untyped_array_holds_strings() -> None:
    sql = compile_field(SOURCE, "$.labels", _field("labels", FieldType.ARRAY))

    assert "SELECT JSON_EXTRACT_SCALAR(item_1, '$') AS element_1" in sql


def test_array_of_arrays_fails_with_element_path() -> None:
    matrix = _field(
        "matrix", FieldType.ARRAY, items=_field("matrix", FieldType.ARRAY)
    )

    with pytest.raises(SchemaValidationError) as excinfo:
        compile_field(SOURCE, "$.matrix", matrix)

    assert excinfo.value.path == "matrix[]"


def test_empty_map_fails_with_path() -> None:
    with pytest.raises(SchemaValidationError) as excinfo:
        compile_field(SOURCE, "$.meta", _field("meta", FieldType.MAP), field_path="meta")

    assert excinfo.value.path == "meta"


def test_compile_top_level_field_aliases_column() -> None:
    item = compile_top_level_field(_field("age", FieldType.NUMBER), source=SOURCE)

    assert item.endswith(" AS `age`")
    assert "'$.age'" in item


def test_identifiers_outside_the_safe_alphabet_are_refused() -> None:
    with pytest.raises(CompilationError):
        quote_identifier("a`b")
    with pytest.raises(CompilationError):
        json_child_path("$", "a.b")
