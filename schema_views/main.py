from __future__ import annotations

import json
import sys
from typing import List, NoReturn, Optional, Tuple

import typer

from schema_views.changelog.audit import DEFAULT_AUDIT_LIMIT, audit_changelog_table
from schema_views.compiler.naming import validate_bigquery_name, validate_project_id
from schema_views.config import Settings, get_settings
from schema_views.domain.loader import LoadResult, read_schemas, split_path_arguments
from schema_views.errors import ConfigurationError, MaterializationError
from schema_views.infrastructure.view_store import BigQueryViewStore
from schema_views.orchestrator import (
    EXIT_FAILURES,
    BatchReport,
    RunConfig,
    persist_report,
    run_batch,
)
from schema_views.reporter import print_report
from schema_views.utils.logging import configure_logging

EXIT_USAGE = 2

app = typer.Typer(help="Generate typed BigQuery views over a raw document changelog.")

ProjectOption = typer.Option(
    None,
    "--project",
    "-P",
    help="Project ID containing the BigQuery dataset (default: PROJECT_ID).",
)
DatasetOption = typer.Option(
    None,
    "--dataset",
    "-d",
    help="ID of the dataset holding the raw changelog (default: DATASET_ID).",
)
PrefixOption = typer.Option(
    None,
    "--table-name-prefix",
    "-t",
    help="Common prefix of the raw changelog table and generated views (default: TABLE_NAME_PREFIX).",
)
SchemaFilesOption = typer.Option(
    None,
    "--schema-files",
    "-f",
    help="Schema file, directory or glob; repeatable or comma separated (default: SCHEMA_FILES).",
)
PartitionOption = typer.Option(
    None,
    "--partition-field",
    help="Raw table partitioning column to expose in the views (default: TIME_PARTITIONING_FIELD).",
)


def _fail(message: str) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=EXIT_USAGE)


def _resolve_target(
    settings: Settings,
    project: Optional[str],
    dataset: Optional[str],
    table_name_prefix: Optional[str],
) -> Tuple[str, str, str]:
    project_id = project or settings.project_id
    dataset_id = dataset or settings.dataset_id
    prefix = table_name_prefix or settings.table_name_prefix
    missing = [
        flag
        for flag, value in (
            ("--project", project_id),
            ("--dataset", dataset_id),
            ("--table-name-prefix", prefix),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(f"Missing required option(s): {', '.join(missing)}")
    return (
        validate_project_id(project_id),
        validate_bigquery_name(dataset_id, "dataset ID"),
        validate_bigquery_name(prefix, "table name prefix"),
    )


def _load_schemas(settings: Settings, schema_files: Optional[List[str]]) -> LoadResult:
    patterns = split_path_arguments(schema_files) if schema_files else settings.schema_file_patterns
    if not patterns:
        raise ConfigurationError("Missing required option: --schema-files")
    return read_schemas(patterns)


def _run(
    project: Optional[str],
    dataset: Optional[str],
    table_name_prefix: Optional[str],
    schema_files: Optional[List[str]],
    partition_field: Optional[str],
    dry_run: bool,
) -> BatchReport:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    try:
        project_id, dataset_id, prefix = _resolve_target(
            settings, project, dataset, table_name_prefix
        )
        loaded = _load_schemas(settings, schema_files)
        config = RunConfig(
            project_id=project_id,
            dataset_id=dataset_id,
            table_name_prefix=prefix,
            schemas=loaded.schemas,
            partition_field=partition_field or settings.time_partitioning_field,
            location=settings.bigquery_location,
            rejected=loaded.failures,
            dry_run=dry_run,
        )
        return run_batch(config)
    except ConfigurationError as exc:
        _fail(str(exc))


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"project={settings.project_id or '-'} dataset={settings.dataset_id or '-'} "
        f"prefix={settings.table_name_prefix or '-'} location={settings.bigquery_location or '-'} | "
        f"schema_files={settings.schema_files or '-'} "
        f"partition_field={settings.time_partitioning_field or '-'} | "
        f"env={settings.app_env} log_level={settings.log_level}"
    )


@app.command()
def run(
    project: Optional[str] = ProjectOption,
    dataset: Optional[str] = DatasetOption,
    table_name_prefix: Optional[str] = PrefixOption,
    schema_files: Optional[List[str]] = SchemaFilesOption,
    partition_field: Optional[str] = PartitionOption,
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Compile and validate only; do not touch BigQuery."
    ),
    json_output: bool = typer.Option(False, "--json", help="Print the report as JSON."),
    report_path: Optional[str] = typer.Option(
        None, "--report-path", help="Also write the JSON report to this file."
    ),
) -> None:
    """
    Compile every schema and create or replace its changelog and latest views.
    """
    report = _run(project, dataset, table_name_prefix, schema_files, partition_field, dry_run)
    if json_output:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        print_report(report)
    if report_path:
        persist_report(report, report_path)
    raise typer.Exit(code=report.exit_code)


@app.command("compile")
def compile_views(
    project: Optional[str] = ProjectOption,
    dataset: Optional[str] = DatasetOption,
    table_name_prefix: Optional[str] = PrefixOption,
    schema_files: Optional[List[str]] = SchemaFilesOption,
    partition_field: Optional[str] = PartitionOption,
) -> None:
    """
    Print the generated view SQL without touching BigQuery.
    """
    report = _run(project, dataset, table_name_prefix, schema_files, partition_field, True)
    for result in report.results:
        if result.compiled is None:
            location = f" at {result.field_path}" if result.field_path else ""
            typer.echo(
                f"-- {result.schema_name}: {result.error_type}{location}: {result.error}", err=True
            )
            continue
        for view_name, sql in result.compiled.views():
            typer.echo(f"-- {report.project_id}.{report.dataset_id}.{view_name}")
            typer.echo(f"{sql};\n")
    raise typer.Exit(code=report.exit_code)


@app.command()
def audit(
    project: Optional[str] = ProjectOption,
    dataset: Optional[str] = DatasetOption,
    table_name_prefix: Optional[str] = PrefixOption,
    limit: int = typer.Option(
        DEFAULT_AUDIT_LIMIT, "--limit", "-l", help="Maximum number of anomalies to report."
    ),
) -> None:
    """
    Check the raw changelog for rows sharing (document_name, timestamp, event_id).
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    try:
        project_id, dataset_id, prefix = _resolve_target(
            settings, project, dataset, table_name_prefix
        )
    except ConfigurationError as exc:
        _fail(str(exc))
    store = BigQueryViewStore(project_id, location=settings.bigquery_location)
    try:
        violations = audit_changelog_table(store, project_id, dataset_id, prefix, limit=limit)
    except MaterializationError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=EXIT_FAILURES) from exc
    for violation in violations:
        typer.echo(str(violation))
    typer.echo(f"{len(violations)} contract violation(s) found.")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
