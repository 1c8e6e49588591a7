"""
Change-event contract audits.

Anomalies are reported as ContractViolation objects and logged at WARNING.
They are never fatal: the latest view breaks ties deterministically, so a
violation degrades which row wins, not whether the view works.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Set, Tuple

from schema_views.changelog.contract import ChangelogRow
from schema_views.changelog.snapshot import as_utc
from schema_views.compiler.naming import (
    qualified_table,
    raw_changelog_table_name,
    validate_bigquery_name,
    validate_project_id,
)
from schema_views.errors import ContractViolation
from schema_views.infrastructure.view_store import ViewStore
from schema_views.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_AUDIT_LIMIT = 100


def _report(violations: List[ContractViolation]) -> List[ContractViolation]:
    for violation in violations:
        log.warning(
            f"[CONTRACT VIOLATION] {violation}",
            extra={"document_name": violation.document_name},
        )
    return violations


def audit_rows(rows: Iterable[ChangelogRow]) -> List[ContractViolation]:
    """
    Check rows in the order a recorder observed them.

    Detects duplicate (document_name, timestamp, event_id) keys, event ids
    reused across rows, and timestamps going backwards for one document.
    """
    violations: List[ContractViolation] = []
    keys: Set[Tuple[str, datetime, str]] = set()
    event_owners: Dict[str, str] = {}
    newest: Dict[str, datetime] = {}

    for row in rows:
        moment = as_utc(row.timestamp)
        key = (row.document_name, moment, row.event_id)
        if key in keys:
            violations.append(
                ContractViolation(
                    f"duplicate (timestamp, event_id) = ({moment.isoformat()}, {row.event_id})",
                    row.document_name,
                )
            )
        elif row.event_id in event_owners:
            violations.append(
                ContractViolation(
                    f"event_id {row.event_id} already used by {event_owners[row.event_id]}",
                    row.document_name,
                )
            )
        keys.add(key)
        event_owners.setdefault(row.event_id, row.document_name)

        previous = newest.get(row.document_name)
        if previous is not None and moment < previous:
            violations.append(
                ContractViolation(
                    f"timestamp {moment.isoformat()} arrived after {previous.isoformat()}",
                    row.document_name,
                )
            )
        if previous is None or moment > previous:
            newest[row.document_name] = moment

    return _report(violations)


def duplicate_events_sql(
    project_id: str,
    dataset_id: str,
    table_name_prefix: str,
    limit: int = DEFAULT_AUDIT_LIMIT,
) -> str:
    """Query listing (document_name, timestamp, event_id) keys stored more than once."""
    table = qualified_table(
        validate_project_id(project_id),
        validate_bigquery_name(dataset_id, "dataset ID"),
        raw_changelog_table_name(validate_bigquery_name(table_name_prefix, "table name prefix")),
    )
    return "\n".join(
        [
            "SELECT",
            "  document_name,",
            "  timestamp,",
            "  event_id,",
            "  COUNT(*) AS row_count",
            "FROM",
            f"  {table}",
            "GROUP BY",
            "  document_name,",
            "  timestamp,",
            "  event_id",
            "HAVING",
            "  COUNT(*) > 1",
            "ORDER BY",
            "  document_name,",
            "  timestamp,",
            "  event_id",
            f"LIMIT {int(limit)}",
        ]
    )


def _violation_from_row(row: Mapping[str, Any]) -> ContractViolation:
    moment = row.get("timestamp")
    rendered = moment.isoformat() if isinstance(moment, datetime) else str(moment)
    return ContractViolation(
        f"{row.get('row_count')} rows share (timestamp, event_id) = "
        f"({rendered}, {row.get('event_id')})",
        row.get("document_name"),
    )


def audit_changelog_table(
    store: ViewStore,
    project_id: str,
    dataset_id: str,
    table_name_prefix: str,
    limit: int = DEFAULT_AUDIT_LIMIT,
) -> List[ContractViolation]:
    """Find duplicate event keys in the stored raw changelog table."""
    sql = duplicate_events_sql(project_id, dataset_id, table_name_prefix, limit=limit)
    log.info(
        "Auditing raw changelog",
        extra={"dataset": dataset_id, "table": raw_changelog_table_name(table_name_prefix)},
    )
    return _report([_violation_from_row(row) for row in store.query(sql)])


__all__ = [
    "DEFAULT_AUDIT_LIMIT",
    "audit_rows",
    "duplicate_events_sql",
    "audit_changelog_table",
]
