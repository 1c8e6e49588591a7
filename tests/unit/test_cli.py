from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from schema_views import main, orchestrator
from schema_views.errors import MaterializationError
from schema_views.main import EXIT_USAGE, app

ENV_VARS = (
    "PROJECT_ID",
    "DATASET_ID",
    "TABLE_NAME_PREFIX",
    "SCHEMA_FILES",
    "TIME_PARTITIONING_FIELD",
    "BIGQUERY_LOCATION",
    "LOG_LEVEL",
    "LOG_JSON",
)
TARGET_ARGS = ["-P", "test-project", "-d", "firestore_export", "-t", "users"]

runner = CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LOG_LEVEL", "CRITICAL")


@pytest.fixture
def patched_store(monkeypatch, fake_store):
    monkeypatch.setattr(orchestrator, "BigQueryViewStore", lambda *args, **kwargs: fake_store)
    return fake_store


def test_run_materializes_views(patched_store, schema_dir: Path) -> None:
    result = runner.invoke(app, ["run", *TARGET_ARGS, "-f", str(schema_dir)])

    assert result.exit_code == 0, result.output
    assert "profile" in result.output
    assert {name for _, name, _ in patched_store.writes} == {
        "users_schema_orders_changelog",
        "users_schema_orders_latest",
        "users_schema_profile_changelog",
        "users_schema_profile_latest",
    }


def test_run_reads_target_from_environment(monkeypatch, patched_store, schema_dir: Path) -> None:
    monkeypatch.setenv("PROJECT_ID", "test-project")
    monkeypatch.setenv("DATASET_ID", "firestore_export")
    monkeypatch.setenv("TABLE_NAME_PREFIX", "users")
    monkeypatch.setenv("SCHEMA_FILES", str(schema_dir / "profile.json"))

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 0, result.output
    assert len(patched_store.writes) == 2


def test_run_json_output_and_report(patched_store, schema_dir: Path, tmp_path: Path) -> None:
    report_path = tmp_path / "report.json"

    result = runner.invoke(
        app,
        ["run", *TARGET_ARGS, "-f", str(schema_dir), "--json", "--report-path", str(report_path)],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["failures"] == 0
    assert json.loads(report_path.read_text(encoding="utf-8"))["failures"] == 0


def test_failed_schema_sets_exit_code(patched_store, schema_dir: Path) -> None:
    (schema_dir / "broken.json").write_text('{"fields": [{"name": "x", "type": "uuid"}]}')

    result = runner.invoke(app, ["run", *TARGET_ARGS, "-f", str(schema_dir), "--json"])

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["failures"] == 1
    assert len(patched_store.writes) == 4


def test_missing_target_is_a_usage_error(schema_dir: Path) -> None:
    result = runner.invoke(app, ["run", "-f", str(schema_dir)])

    assert result.exit_code == EXIT_USAGE
    assert "--project" in result.output


def test_missing_schema_files_is_a_usage_error() -> None:
    result = runner.invoke(app, ["run", *TARGET_ARGS])

    assert result.exit_code == EXIT_USAGE
    assert "--schema-files" in result.output


def test_invalid_identifier_is_a_usage_error(schema_dir: Path) -> None:
    result = runner.invoke(
        app, ["run", "-P", "test-project", "-d", "bad-dataset", "-t", "users", "-f", str(schema_dir)]
    )

    assert result.exit_code == EXIT_USAGE
    assert "dataset ID" in result.output


def test_compile_prints_sql_without_store(monkeypatch, schema_dir: Path) -> None:
    def no_store(*args, **kwargs):
        raise AssertionError("compile must not build a store")

    monkeypatch.setattr(orchestrator, "BigQueryViewStore", no_store)

    result = runner.invoke(app, ["compile", *TARGET_ARGS, "-f", str(schema_dir / "profile.json")])

    assert result.exit_code == 0, result.output
    assert "-- test-project.firestore_export.users_schema_profile_latest" in result.output
    assert "ROW_NUMBER() OVER" in result.output


def test_audit_lists_violations(monkeypatch, fake_store) -> None:
    fake_store.query_rows = [
        {"document_name": "users/alice", "timestamp": "2024-01-01", "event_id": "e1", "row_count": 2}
    ]
    monkeypatch.setattr(main, "BigQueryViewStore", lambda *args, **kwargs: fake_store)

    result = runner.invoke(app, ["audit", *TARGET_ARGS])

    assert result.exit_code == 0, result.output
    assert "users/alice" in result.output
    assert "1 contract violation(s) found." in result.output


def test_info_shows_settings(monkeypatch) -> None:
    monkeypatch.setenv("PROJECT_ID", "test-project")

    result = runner.invoke(app, ["info"])

    assert result.exit_code == 0
    assert "project=test-project" in result.output


def test_audit_reports_store_errors_without_traceback(monkeypatch, fake_store) -> None:
    def failing_query(sql):
        raise MaterializationError("query failed: table not found")

    monkeypatch.setattr(fake_store, "query", failing_query)
    monkeypatch.setattr(main, "BigQueryViewStore", lambda *args, **kwargs: fake_store)

    result = runner.invoke(app, ["audit", *TARGET_ARGS])

    assert result.exit_code == 1
    assert "Error: query failed: table not found" in result.output
    assert not isinstance(result.exception, MaterializationError)
