"""
BigQuery client factory and retry policy for schema-views.

Client construction takes the project explicitly instead of reading it from
ambient environment variables, so every caller states which project it
talks to. Credentials come from Application Default Credentials.

Includes retry logic for transient API failures using tenacity.
"""

from __future__ import annotations

from typing import Optional

from google.api_core import exceptions as api_exceptions
from google.cloud import bigquery
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

# Server-side hiccups and rate limiting; everything else is a real failure.
TRANSIENT_ERRORS = (
    api_exceptions.TooManyRequests,
    api_exceptions.InternalServerError,
    api_exceptions.BadGateway,
    api_exceptions.ServiceUnavailable,
    api_exceptions.GatewayTimeout,
)

bigquery_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    reraise=True,
)


def create_client(project_id: str, location: Optional[str] = None) -> bigquery.Client:
    """
    Build a BigQuery client bound to `project_id`.

    Parameters
    ----------
    project_id : str
        Project that owns the dataset and runs the jobs.
    location : str, optional
        Default location for jobs (e.g. "US", "europe-west1").

    Returns
    -------
    bigquery.Client
        A client using Application Default Credentials.
    """
    return bigquery.Client(project=project_id, location=location)


__all__ = ["TRANSIENT_ERRORS", "bigquery_retry", "create_client"]
