"""
View resource manager: create or replace a schema's generated views.

Materialization is idempotent per view:
- absent             -> create
- present, differs   -> replace
- present, identical -> no store write

The raw changelog table is never a target: a view name equal to the raw
table name, or an existing object that is not a view, is refused.

Two processes materializing the *same* schema name at once are not
coordinated here; callers serialize such runs themselves.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict

from schema_views.compiler.naming import raw_changelog_table_name
from schema_views.compiler.views import CompiledViews
from schema_views.errors import MaterializationError
from schema_views.infrastructure.view_store import ViewStore, same_definition
from schema_views.utils.logging import get_logger

log = get_logger(__name__)


class ViewOutcome(str, Enum):
    CREATED = "created"
    REPLACED = "replaced"
    UNCHANGED = "unchanged"


class ViewMaterializer:
    """Applies compiled view definitions to a ViewStore."""

    def __init__(self, store: ViewStore) -> None:
        self.store = store

    def materialize(
        self,
        dataset_id: str,
        table_name_prefix: str,
        schema_name: str,
        compiled: CompiledViews,
    ) -> Dict[str, ViewOutcome]:
        """
        Bring both views of `schema_name` in line with `compiled`.

        Returns
        -------
        Dict[str, ViewOutcome]
            Outcome per view name, in materialization order.

        Raises
        ------
        MaterializationError
            A view could not be created or replaced. Views handled before the
            failing one keep their new, complete definition.
        """
        if compiled.schema_name != schema_name:
            raise MaterializationError(
                f"compiled views belong to schema '{compiled.schema_name}', not '{schema_name}'"
            )
        outcomes: Dict[str, ViewOutcome] = {}
        for name, sql in compiled.views():
            outcomes[name] = self.materialize_view(dataset_id, table_name_prefix, name, sql)
        return outcomes

    def materialize_view(
        self, dataset_id: str, table_name_prefix: str, view_name: str, sql: str
    ) -> ViewOutcome:
        if view_name == raw_changelog_table_name(table_name_prefix):
            raise MaterializationError("refusing to overwrite the raw changelog table", view_name)

        existing = self.store.get_view(dataset_id, view_name)
        if existing is None:
            self.store.create_view(dataset_id, view_name, sql)
            outcome = ViewOutcome.CREATED
        elif not existing.is_view:
            raise MaterializationError(
                f"an object of type {existing.table_type} already uses this name", view_name
            )
        elif same_definition(existing.view_query, sql):
            outcome = ViewOutcome.UNCHANGED
        else:
            self.store.replace_view(dataset_id, view_name, sql)
            outcome = ViewOutcome.REPLACED

        log.info(
            f"[VIEW {outcome.value.upper()}] {dataset_id}.{view_name}",
            extra={"dataset": dataset_id, "view": view_name, "outcome": outcome.value},
        )
        return outcome


__all__ = ["ViewOutcome", "ViewMaterializer"]
