"""
Domain models for schema-views.

A schema is an ordered tree of typed field declarations describing how to
read the opaque JSON `data` payload of the raw changelog table. Models are
frozen pydantic models: a schema is built once (by the loader or by hand)
and never mutated afterwards.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, Field


class FieldType(str, Enum):
    """Type tags accepted in schema declarations."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    REFERENCE = "reference"
    GEOPOINT = "geopoint"
    MAP = "map"
    ARRAY = "array"

    @property
    def is_primitive(self) -> bool:
        return self not in (FieldType.MAP, FieldType.ARRAY)


class FieldDefinition(BaseModel):
    """
    One declared field.

    `fields` holds the nested declarations of a `map`; `items` holds the
    element declaration of an `array` (its `name` mirrors the array's name
    and is only used for error paths).
    """

    name: str = Field(..., description="Key of the field inside its parent JSON object.")
    type: FieldType = Field(..., description="Declared type tag.")
    fields: Tuple["FieldDefinition", ...] = Field(
        (), description="Ordered nested fields (map only)."
    )
    items: Optional["FieldDefinition"] = Field(None, description="Element type (array only).")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    @property
    def element(self) -> "FieldDefinition":
        """Element declaration of an array; untyped arrays hold strings."""
        if self.items is not None:
            return self.items
        return FieldDefinition(name=self.name, type=FieldType.STRING)


class Schema(BaseModel):
    """An ordered list of top-level field declarations."""

    fields: Tuple[FieldDefinition, ...] = Field((), description="Top-level fields, in column order.")
    source_path: Optional[str] = Field(None, description="File the schema was loaded from.")

    model_config = {
        "frozen": True,
    }

    @property
    def field_names(self) -> list[str]:
        return [field.name for field in self.fields]


FieldDefinition.model_rebuild()


__all__ = ["FieldType", "FieldDefinition", "Schema"]
