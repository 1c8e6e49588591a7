"""
The change-event contract between the recording collaborator and the views.

The generated views are only correct if whoever appends to the raw
changelog table follows these rules:

- Every source mutation appends exactly one row; rows are never updated or
  deleted afterwards.
- `event_id` is globally unique.
- For one `document_name`, timestamps are non-decreasing in the order the
  recorder observes them. Rows of *different* documents may arrive in any
  order; out-of-order delivery for the *same* document is a known risk the
  views cannot detect (the latest view trusts the timestamps).
- DELETE rows carry no `data`.
- If the raw table is time-partitioned on a column, the recorder copies that
  column's value out of `data` into the row.

The recorder itself (trigger wiring, BigQuery streaming client) lives
outside this package; `ChangeRecorder` is the interface it offers.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, Field

from schema_views.errors import ContractViolation

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ChangeType(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    IMPORT = "IMPORT"


def _encode_value(value: Any) -> Any:
    # Timestamps use the Firestore wire shape the timestamp columns read first.
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        delta = moment - _EPOCH
        return {
            "_seconds": delta.days * 86400 + delta.seconds,
            "_nanoseconds": delta.microseconds * 1000,
        }
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_document(data: Mapping[str, Any]) -> str:
    """Serialize a document payload the way it is stored in `data`."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_encode_value)


class ChangelogRow(BaseModel):
    """One appended changelog row."""

    timestamp: datetime = Field(..., description="When the mutation happened (timezone-aware).")
    operation: ChangeType = Field(..., description="Kind of mutation.")
    document_name: str = Field(..., min_length=1, description="Full document path; record key.")
    document_id: str = Field(..., min_length=1, description="Last segment of document_name.")
    event_id: str = Field(..., min_length=1, description="Globally unique event identifier.")
    data: Optional[Dict[str, Any]] = Field(None, description="Document payload; None for DELETE.")
    partition_value: Optional[Any] = Field(
        None, description="Value of the raw table's partitioning column, if any."
    )

    model_config = {
        "frozen": True,
    }

    def serialized_data(self) -> Optional[str]:
        if self.operation is ChangeType.DELETE or self.data is None:
            return None
        return encode_document(self.data)

    def to_table_row(self, partition_field: Optional[str] = None) -> Dict[str, Any]:
        """Column values for the raw changelog table."""
        row: Dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "event_id": self.event_id,
            "document_name": self.document_name,
            "operation": self.operation.value,
            "data": self.serialized_data(),
            "document_id": self.document_id,
        }
        if partition_field:
            row[partition_field] = self.partition_value
        return row


@runtime_checkable
class ChangeRecorder(Protocol):
    """
    Appends changelog rows to the raw table.

    Called once per source mutation with exactly one row. Implementations
    raise on failure; a return means the rows were accepted.
    """

    def record(self, rows: Sequence[ChangelogRow]) -> None:
        ...


def change_type(
    before: Optional[Mapping[str, Any]],
    after: Optional[Mapping[str, Any]],
    imported: bool = False,
) -> ChangeType:
    """Classify a mutation from the document snapshots around it."""
    if imported:
        return ChangeType.IMPORT
    if after is None:
        if before is None:
            raise ContractViolation("a change needs a before or an after snapshot")
        return ChangeType.DELETE
    if before is None:
        return ChangeType.CREATE
    return ChangeType.UPDATE


def document_id_from_name(document_name: str) -> str:
    document_id = document_name.rstrip("/").rsplit("/", 1)[-1]
    if not document_id:
        raise ContractViolation("document name has no id segment", document_name)
    return document_id


def build_changelog_row(
    before: Optional[Mapping[str, Any]],
    after: Optional[Mapping[str, Any]],
    *,
    document_name: str,
    event_id: str,
    timestamp: datetime,
    partition_field: Optional[str] = None,
    imported: bool = False,
) -> ChangelogRow:
    """
    Build the single row a mutation must append.

    `before` / `after` are the document snapshots around the mutation (None
    when the document did not exist). For imports of existing documents,
    pass the document as `after` and `imported=True`.
    """
    operation = change_type(before, after, imported=imported)
    if operation is ChangeType.IMPORT and after is None:
        raise ContractViolation("an import needs the imported document", document_name)
    data = dict(after) if after is not None and operation is not ChangeType.DELETE else None
    partition_value = data.get(partition_field) if data is not None and partition_field else None
    return ChangelogRow(
        timestamp=timestamp,
        operation=operation,
        document_name=document_name,
        document_id=document_id_from_name(document_name),
        event_id=event_id,
        data=data,
        partition_value=partition_value,
    )


def validate_changelog_row(row: ChangelogRow) -> None:
    """Raise ContractViolation listing every rule `row` breaks."""
    problems = []
    if row.timestamp.tzinfo is None or row.timestamp.utcoffset() is None:
        problems.append("timestamp must be timezone-aware")
    if row.operation is ChangeType.DELETE and row.data:
        problems.append("DELETE rows must not carry data")
    if row.operation is not ChangeType.DELETE and row.data is None:
        problems.append(f"{row.operation.value} rows must carry data")
    if row.document_name.rstrip("/").rsplit("/", 1)[-1] != row.document_id:
        problems.append("document_id must be the last segment of document_name")
    if problems:
        raise ContractViolation("; ".join(problems), row.document_name)


__all__ = [
    "ChangeType",
    "ChangelogRow",
    "ChangeRecorder",
    "encode_document",
    "change_type",
    "document_id_from_name",
    "build_changelog_row",
    "validate_changelog_row",
]
