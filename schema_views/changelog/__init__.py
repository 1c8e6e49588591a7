"""
Change-event contract package.

Defines the row shape the recording collaborator appends to the raw
changelog, the recorder interface, the reference latest-state semantics,
and audits that surface contract violations as warnings.
"""

from schema_views.changelog.audit import audit_changelog_table, audit_rows
from schema_views.changelog.contract import (
    ChangelogRow,
    ChangeRecorder,
    ChangeType,
    build_changelog_row,
    validate_changelog_row,
)
from schema_views.changelog.snapshot import latest_rows, latest_snapshot

__all__ = [
    "ChangeType",
    "ChangelogRow",
    "ChangeRecorder",
    "build_changelog_row",
    "validate_changelog_row",
    "latest_rows",
    "latest_snapshot",
    "audit_rows",
    "audit_changelog_table",
]
