"""
Infrastructure package for schema-views.

Centralizes BigQuery connectivity (client factory, retry policy) and the
view store used by the materializer. Keep this layer focused on I/O,
decoupled from SQL generation and orchestration.
"""

from schema_views.infrastructure.bigquery_factory import bigquery_retry, create_client
from schema_views.infrastructure.view_store import BigQueryViewStore, ExistingView, ViewStore

__all__ = [
    "bigquery_retry",
    "create_client",
    "BigQueryViewStore",
    "ExistingView",
    "ViewStore",
]
