"""
In-memory reference for the latest view's row selection.

Mirrors the SQL exactly: per `document_name` the winning row is the maximum
of (timestamp, event_id, data) where a missing `data` sorts lowest, and a
document whose winning row is a DELETE is absent from the snapshot. Arrival
order never matters.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, Tuple

from schema_views.changelog.contract import ChangelogRow, ChangeType


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def ordering_key(row: ChangelogRow) -> Tuple[datetime, str, Tuple[int, str]]:
    data = row.serialized_data()
    return (as_utc(row.timestamp), row.event_id, (0, "") if data is None else (1, data))


def latest_rows(rows: Iterable[ChangelogRow]) -> Dict[str, ChangelogRow]:
    """Winning row per document, tombstones included."""
    winners: Dict[str, ChangelogRow] = {}
    for row in rows:
        current = winners.get(row.document_name)
        if current is None or ordering_key(row) > ordering_key(current):
            winners[row.document_name] = row
    return winners


def latest_snapshot(rows: Iterable[ChangelogRow]) -> Dict[str, ChangelogRow]:
    """Current state per live document, keyed by document name."""
    return {
        name: row
        for name, row in latest_rows(rows).items()
        if row.operation is not ChangeType.DELETE
    }


__all__ = ["as_utc", "ordering_key", "latest_rows", "latest_snapshot"]
