"""
View storage backends.

`ViewStore` is the narrow interface the materializer and the audits need:
read a view definition, create or replace one view, run a read-only query.
`BigQueryViewStore` implements it on google-cloud-bigquery; each create or
replace is a single API call, so a view is either fully defined or untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, runtime_checkable

from google.api_core import exceptions as api_exceptions
from google.cloud import bigquery

from schema_views.errors import MaterializationError
from schema_views.infrastructure.bigquery_factory import bigquery_retry, create_client
from schema_views.utils.logging import get_logger

log = get_logger(__name__)

VIEW_TABLE_TYPE = "VIEW"


def same_definition(current: Optional[str], desired: str) -> bool:
    """Whether a stored view query matches `desired`, ignoring surrounding whitespace."""
    return current is not None and current.strip() == desired.strip()


@dataclass(frozen=True)
class ExistingView:
    """What the store currently holds under a view name."""

    name: str
    table_type: str
    view_query: Optional[str]

    @property
    def is_view(self) -> bool:
        return self.table_type == VIEW_TABLE_TYPE


@runtime_checkable
class ViewStore(Protocol):
    """Operations the core performs against the relational store."""

    def get_view(self, dataset_id: str, view_name: str) -> Optional[ExistingView]:
        """Return the object stored under `view_name`, or None if absent."""
        ...

    def create_view(self, dataset_id: str, view_name: str, sql: str) -> None:
        ...

    def replace_view(self, dataset_id: str, view_name: str, sql: str) -> None:
        ...

    def query(self, sql: str) -> Iterable[Mapping[str, Any]]:
        ...


class BigQueryViewStore:
    """
    ViewStore backed by BigQuery.

    Parameters
    ----------
    project_id : str
        Project holding the datasets.
    client : bigquery.Client, optional
        Pre-built client (tests inject fakes here); created lazily otherwise.
    location : str, optional
        Job location used when no client is supplied.
    """

    def __init__(
        self,
        project_id: str,
        client: Optional[bigquery.Client] = None,
        location: Optional[str] = None,
    ) -> None:
        self.project_id = project_id
        self.location = location
        self._client = client

    @property
    def client(self) -> bigquery.Client:
        if self._client is None:
            self._client = create_client(self.project_id, location=self.location)
        return self._client

    def _table_id(self, dataset_id: str, name: str) -> str:
        return f"{self.project_id}.{dataset_id}.{name}"

    def get_view(self, dataset_id: str, view_name: str) -> Optional[ExistingView]:
        try:
            table = self._get_table(self._table_id(dataset_id, view_name))
        except api_exceptions.NotFound:
            return None
        except api_exceptions.GoogleAPIError as exc:
            raise MaterializationError(f"cannot read current definition: {exc}", view_name) from exc
        return ExistingView(name=view_name, table_type=table.table_type, view_query=table.view_query)

    def create_view(self, dataset_id: str, view_name: str, sql: str) -> None:
        table_id = self._table_id(dataset_id, view_name)
        try:
            self._create_view(table_id, sql)
        except api_exceptions.Conflict as exc:
            # A retried create may have landed on the first attempt.
            existing = self.get_view(dataset_id, view_name)
            if (
                existing is not None
                and existing.is_view
                and same_definition(existing.view_query, sql)
            ):
                log.debug("View already created", extra={"view": table_id})
                return
            raise MaterializationError(f"view was created concurrently: {exc}", view_name) from exc
        except api_exceptions.GoogleAPIError as exc:
            raise MaterializationError(f"create failed: {exc}", view_name) from exc

    def replace_view(self, dataset_id: str, view_name: str, sql: str) -> None:
        try:
            self._replace_view(self._table_id(dataset_id, view_name), sql)
        except api_exceptions.GoogleAPIError as exc:
            raise MaterializationError(f"replace failed: {exc}", view_name) from exc

    def query(self, sql: str) -> List[Dict[str, Any]]:
        try:
            return [dict(row.items()) for row in self._query(sql)]
        except api_exceptions.GoogleAPIError as exc:
            raise MaterializationError(f"query failed: {exc}") from exc

    @bigquery_retry
    def _get_table(self, table_id: str) -> bigquery.Table:
        return self.client.get_table(table_id)

    @bigquery_retry
    def _create_view(self, table_id: str, sql: str) -> None:
        table = bigquery.Table(table_id)
        table.view_query = sql
        self.client.create_table(table)

    @bigquery_retry
    def _replace_view(self, table_id: str, sql: str) -> None:
        table = self.client.get_table(table_id)
        table.view_query = sql
        self.client.update_table(table, ["view_query"])

    @bigquery_retry
    def _query(self, sql: str) -> Iterable[Any]:
        return self.client.query(sql).result()


__all__ = [
    "ExistingView",
    "ViewStore",
    "BigQueryViewStore",
    "VIEW_TABLE_TYPE",
    "same_definition",
]
