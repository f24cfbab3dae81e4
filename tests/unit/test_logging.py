from __future__ import annotations

import json
import logging

import pytest

from kennel_automation.engine.logging import (
    JsonFormatter,
    KeyValueFormatter,
    configure_logging,
    extra_fields,
)


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="kennel_automation.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Enrolled %s",
        args=("enr-1",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_extra_fields_skip_standard_attributes() -> None:
    assert extra_fields(_record()) == {}
    assert extra_fields(_record(workflow_id="wf-1", _private=1)) == {"workflow_id": "wf-1"}


def test_json_formatter_puts_extra_fields_under_extra() -> None:
    payload = json.loads(JsonFormatter().format(_record(workflow_id="wf-1", subject_id="o-1")))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "kennel_automation.test"
    assert payload["message"] == "Enrolled enr-1"
    assert payload["extra"] == {"workflow_id": "wf-1", "subject_id": "o-1"}


def test_json_formatter_stringifies_unknown_types() -> None:
    payload = json.loads(JsonFormatter().format(_record(path=object())))

    assert payload["extra"]["path"].startswith("<object object")


def test_key_value_formatter_appends_pairs() -> None:
    line = KeyValueFormatter().format(
        _record(workflow_id="wf-1", reason="amount 10 < 50", issues=["a"])
    )

    assert line.endswith(
        'INFO kennel_automation.test: Enrolled enr-1 '
        'workflow_id=wf-1 reason="amount 10 < 50" issues=["a"]'
    )


def test_configure_logging_replaces_handlers(restore_root_logging) -> None:
    configure_logging("debug")
    configure_logging("warning", "text")

    root = restore_root_logging
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, KeyValueFormatter)
    assert root.level == logging.WARNING


def test_configure_logging_rejects_unknown_format(restore_root_logging) -> None:
    with pytest.raises(ValueError, match="xml"):
        configure_logging("info", "xml")
