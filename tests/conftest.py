"""
Pytest configuration for schema-views.

Provides fixtures for:
- An in-memory view store standing in for BigQuery
- Representative schemas and schema files on disk
- A settings cache reset so env overrides apply per test
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pytest

from schema_views.config import get_settings
from schema_views.domain.loader import parse_schema_document
from schema_views.domain.models import Schema
from schema_views.errors import MaterializationError
from schema_views.infrastructure.view_store import VIEW_TABLE_TYPE, ExistingView

TEST_PROJECT = "test-project"
TEST_DATASET = "firestore_export"
TEST_PREFIX = "users"

PROFILE_SCHEMA: Dict[str, Any] = {
    "fields": [
        {"name": "name", "type": "string"},
        {"name": "age", "type": "number"},
        {"name": "active", "type": "boolean"},
        {"name": "created", "type": "timestamp"},
        {
            "name": "address",
            "type": "map",
            "fields": [
                {"name": "city", "type": "string"},
                {"name": "location", "type": "geopoint"},
            ],
        },
        {"name": "tags", "type": "array", "items": {"type": "string"}},
    ]
}

ORDER_SCHEMA: Dict[str, Any] = {
    "fields": [
        {"name": "customer", "type": "reference"},
        {
            "name": "lines",
            "type": "array",
            "fields": [
                {"name": "sku", "type": "string"},
                {"name": "quantity", "type": "number"},
            ],
        },
    ]
}


class FakeViewStore:
    """ViewStore keeping definitions in a dict; records every write."""

    def __init__(self, tables: Optional[Mapping[Tuple[str, str], ExistingView]] = None) -> None:
        self.objects: Dict[Tuple[str, str], ExistingView] = dict(tables or {})
        self.writes: List[Tuple[str, str, str]] = []
        self.queries: List[str] = []
        self.query_rows: List[Dict[str, Any]] = []
        self.fail_on: set = set()

    def get_view(self, dataset_id: str, view_name: str) -> Optional[ExistingView]:
        return self.objects.get((dataset_id, view_name))

    def create_view(self, dataset_id: str, view_name: str, sql: str) -> None:
        self._write("create", dataset_id, view_name, sql)

    def replace_view(self, dataset_id: str, view_name: str, sql: str) -> None:
        self._write("replace", dataset_id, view_name, sql)

    def query(self, sql: str) -> List[Dict[str, Any]]:
        self.queries.append(sql)
        return list(self.query_rows)

    def add_table(self, dataset_id: str, name: str) -> None:
        self.objects[(dataset_id, name)] = ExistingView(name=name, table_type="TABLE", view_query=None)

    def _write(self, action: str, dataset_id: str, view_name: str, sql: str) -> None:
        if view_name in self.fail_on:
            raise MaterializationError(f"{action} failed: backend unavailable", view_name)
        self.writes.append((action, view_name, sql))
        self.objects[(dataset_id, view_name)] = ExistingView(
            name=view_name, table_type=VIEW_TABLE_TYPE, view_query=sql
        )


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_store() -> FakeViewStore:
    return FakeViewStore()


@pytest.fixture
def profile_schema() -> Schema:
    return parse_schema_document(PROFILE_SCHEMA)


@pytest.fixture
def order_schema() -> Schema:
    return parse_schema_document(ORDER_SCHEMA)


@pytest.fixture
def schema_dir(tmp_path: Path) -> Path:
    """Directory with two valid schema files."""
    directory = tmp_path / "schemas"
    directory.mkdir()
    (directory / "profile.json").write_text(json.dumps(PROFILE_SCHEMA), encoding="utf-8")
    (directory / "orders.json").write_text(json.dumps(ORDER_SCHEMA), encoding="utf-8")
    return directory
