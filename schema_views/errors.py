"""
Error taxonomy for schema-views.

Every failure raised by the compiler, the materializer or the changelog
contract helpers derives from `SchemaViewsError`, so the batch orchestrator
can record a per-schema failure without catching unrelated exceptions.
"""

from __future__ import annotations

from typing import Optional


class SchemaViewsError(Exception):
    """Base class for all schema-views errors."""


class ConfigurationError(SchemaViewsError):
    """Invalid project, dataset, prefix or other run configuration."""


class SchemaValidationError(SchemaViewsError):
    """
    A schema (or schema source file) is invalid.

    `path` is the dotted field path of the offending declaration, e.g.
    ``address.geo`` or ``lines[].sku``; it is None for file-level problems.
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.message = message
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class CompilationError(SchemaViewsError):
    """An internal invariant was violated while generating SQL."""


class MaterializationError(SchemaViewsError):
    """The view store rejected a read, create, replace or query."""

    def __init__(self, message: str, view_name: Optional[str] = None) -> None:
        self.view_name = view_name
        super().__init__(f"{view_name}: {message}" if view_name else message)


class ContractViolation(SchemaViewsError):
    """A changelog row (or set of rows) breaks the change-event contract."""

    def __init__(self, message: str, document_name: Optional[str] = None) -> None:
        self.document_name = document_name
        super().__init__(f"{document_name}: {message}" if document_name else message)


__all__ = [
    "SchemaViewsError",
    "ConfigurationError",
    "SchemaValidationError",
    "CompilationError",
    "MaterializationError",
    "ContractViolation",
]
