"""
Configuration settings for schema-views.

Uses Pydantic Settings to load environment variables (or a `.env` file) for
the BigQuery target, the schema file locations and logging. Only the CLI
reads settings; the batch entry point receives an explicit RunConfig.
"""
from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from schema_views.domain.loader import split_path_arguments


class Settings(BaseSettings):
    # BigQuery target
    project_id: Optional[str] = Field(None, alias="PROJECT_ID")
    dataset_id: Optional[str] = Field(None, alias="DATASET_ID")
    table_name_prefix: Optional[str] = Field(None, alias="TABLE_NAME_PREFIX")
    bigquery_location: Optional[str] = Field(None, alias="BIGQUERY_LOCATION")
    time_partitioning_field: Optional[str] = Field(None, alias="TIME_PARTITIONING_FIELD")

    # Schema sources: comma separated files, directories or globs
    schema_files: str = Field("", alias="SCHEMA_FILES")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def schema_file_patterns(self) -> List[str]:
        return split_path_arguments([self.schema_files])


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
