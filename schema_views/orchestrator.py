"""
Batch entry point: compile and materialize every schema of a run.

Usage:
    from schema_views.orchestrator import RunConfig, run

    exit_code = run(
        RunConfig(
            project_id="my-project",
            dataset_id="firestore_export",
            table_name_prefix="users",
            schemas={"profile": schema},
        )
    )

Each schema is handled independently: a validation, compilation or
materialization failure is recorded for that schema and the batch moves on.
The exit code is non-zero if any schema failed.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from schema_views.compiler.views import CompiledViews, SchemaCompiler
from schema_views.domain.models import Schema
from schema_views.errors import SchemaValidationError, SchemaViewsError
from schema_views.infrastructure.view_store import BigQueryViewStore, ViewStore
from schema_views.materializer import ViewMaterializer
from schema_views.utils.logging import get_logger

log = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1

STATUS_MATERIALIZED = "materialized"
STATUS_COMPILED = "compiled"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class RunConfig:
    """
    Everything one batch needs, passed explicitly.

    `rejected` carries schemas that failed before the batch started (e.g. a
    malformed source file) so they are reported with the rest.
    """

    project_id: str
    dataset_id: str
    table_name_prefix: str
    schemas: Mapping[str, Schema]
    partition_field: Optional[str] = None
    location: Optional[str] = None
    rejected: Mapping[str, SchemaViewsError] = field(default_factory=dict)
    dry_run: bool = False


@dataclass
class SchemaResult:
    """Outcome of one schema in a batch."""

    schema_name: str
    status: str
    views: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    error_type: Optional[str] = None
    field_path: Optional[str] = None
    duration_seconds: float = 0.0
    compiled: Optional[CompiledViews] = None

    @property
    def failed(self) -> bool:
        return self.status == STATUS_FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": self.schema_name,
            "status": self.status,
            "views": dict(self.views),
            "error": self.error,
            "error_type": self.error_type,
            "field_path": self.field_path,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass
class BatchReport:
    """Aggregated results of a batch."""

    project_id: str
    dataset_id: str
    table_name_prefix: str
    dry_run: bool = False
    results: List[SchemaResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def failures(self) -> List[SchemaResult]:
        return [result for result in self.results if result.failed]

    @property
    def exit_code(self) -> int:
        return EXIT_FAILURES if self.failures else EXIT_OK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.started_at.isoformat(),
            "project_id": self.project_id,
            "dataset_id": self.dataset_id,
            "table_name_prefix": self.table_name_prefix,
            "dry_run": self.dry_run,
            "failures": len(self.failures),
            "results": [result.to_dict() for result in self.results],
        }


def _failed_result(name: str, exc: BaseException, duration: float = 0.0) -> SchemaResult:
    return SchemaResult(
        schema_name=name,
        status=STATUS_FAILED,
        error=exc.message if isinstance(exc, SchemaValidationError) else str(exc),
        error_type=type(exc).__name__,
        field_path=exc.path if isinstance(exc, SchemaValidationError) else None,
        duration_seconds=duration,
    )


def _process_schema(
    name: str,
    schema: Schema,
    config: RunConfig,
    compiler: SchemaCompiler,
    materializer: Optional[ViewMaterializer],
) -> SchemaResult:
    log.info(f"[SCHEMA START] {name}", extra={"schema": name, "fields": len(schema.fields)})
    start = time.perf_counter()
    try:
        compiled = compiler.compile(name, schema)
        if materializer is None:
            views = {view: STATUS_COMPILED for view, _ in compiled.views()}
            status = STATUS_COMPILED
        else:
            outcomes = materializer.materialize(
                config.dataset_id, config.table_name_prefix, name, compiled
            )
            views = {view: outcome.value for view, outcome in outcomes.items()}
            status = STATUS_MATERIALIZED
    except SchemaViewsError as exc:
        log.error(
            f"[SCHEMA FAILED] {name}: {exc}",
            extra={"schema": name, "error_type": type(exc).__name__},
        )
        return _failed_result(name, exc, time.perf_counter() - start)
    except Exception as exc:  # noqa: BLE001 - intentional broad catch to record failures
        log.exception(f"[SCHEMA FAILED] {name}", extra={"schema": name})
        return _failed_result(name, exc, time.perf_counter() - start)

    duration = time.perf_counter() - start
    log.info(
        f"[SCHEMA SUCCESS] {name}",
        extra={"schema": name, "status": status, "views": views, "duration": round(duration, 3)},
    )
    return SchemaResult(
        schema_name=name,
        status=status,
        views=views,
        duration_seconds=duration,
        compiled=compiled,
    )


def run_batch(config: RunConfig, store: Optional[ViewStore] = None) -> BatchReport:
    """
    Compile (and unless `dry_run`, materialize) every schema in `config`.

    Parameters
    ----------
    config : RunConfig
        Target dataset, prefix and schemas.
    store : ViewStore, optional
        View store to write to; a BigQueryViewStore for `config.project_id`
        is created when omitted and the run is not a dry run.

    Raises
    ------
    ConfigurationError
        The project, dataset, prefix or partition field is invalid; no
        schema is processed.
    """
    compiler = SchemaCompiler(
        config.project_id,
        config.dataset_id,
        config.table_name_prefix,
        partition_field=config.partition_field,
    )
    materializer: Optional[ViewMaterializer] = None
    if not config.dry_run:
        if store is None:
            store = BigQueryViewStore(config.project_id, location=config.location)
        materializer = ViewMaterializer(store)

    report = BatchReport(
        project_id=config.project_id,
        dataset_id=config.dataset_id,
        table_name_prefix=config.table_name_prefix,
        dry_run=config.dry_run,
    )
    total = len(config.schemas) + len(config.rejected)
    if total == 0:
        log.warning("No schema files found!")

    for name, error in config.rejected.items():
        log.error(f"[SCHEMA REJECTED] {name}: {error}", extra={"schema": name})
        report.results.append(_failed_result(name, error))

    for name, schema in config.schemas.items():
        report.results.append(_process_schema(name, schema, config, compiler, materializer))

    log.info(
        f"[BATCH COMPLETE] {total - len(report.failures)}/{total} schema(s) succeeded",
        extra={"schemas": total, "failures": len(report.failures), "dry_run": config.dry_run},
    )
    return report


def run(config: RunConfig, store: Optional[ViewStore] = None) -> int:
    """Run a batch and return its exit code."""
    return run_batch(config, store=store).exit_code


def persist_report(report: BatchReport, path: Path | str) -> Path:
    """Write the report as JSON."""
    report_path = Path(path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    with report_path.open("w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, indent=2, sort_keys=True)
    log.info("Report persisted", extra={"report_path": str(report_path)})
    return report_path


__all__ = [
    "EXIT_OK",
    "EXIT_FAILURES",
    "RunConfig",
    "SchemaResult",
    "BatchReport",
    "run_batch",
    "run",
    "persist_report",
]
