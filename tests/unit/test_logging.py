from __future__ import annotations

import json
import logging

from schema_views.utils.logging import _json_formatter, configure_logging

EXPECTED_FIELDS = 6
EXPECTED_FAILURES = 2


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_json_formatter_promotes_standard_extra_fields() -> None:
    record = _record()
    record.fields = EXPECTED_FIELDS
    record.schema = "profile"

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "hello"
    assert payload["fields"] == EXPECTED_FIELDS
    assert payload["schema"] == "profile"


def test_json_formatter_supports_legacy_nested_extra_field() -> None:
    record = _record()
    record.extra = {"failures": EXPECTED_FAILURES}

    payload = json.loads(_json_formatter(record))

    assert payload["failures"] == EXPECTED_FAILURES
    assert "extra" not in payload


def test_json_formatter_renders_non_json_values() -> None:
    record = _record()
    record.views = {"users_schema_profile_latest": object()}

    payload = json.loads(_json_formatter(record))

    assert "users_schema_profile_latest" in payload["views"]


def test_configure_logging_quiets_client_libraries() -> None:
    configure_logging(level="debug", json_logs=True)

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("google.api_core").level == logging.WARNING
