from __future__ import annotations

import json
import logging
import sys

import pytest

from learnprogress.core.logging import (
    _ContainerFormatter,
    _ContextFilter,
    _JsonFormatter,
    learner_id_var,
    request_id_var,
    setup_logging,
)


def _record(level: int = logging.INFO, msg: str = "hello", *args, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="learnprogress.services.cascade",
        level=level,
        pathname="cascade.py",
        lineno=42,
        msg=msg,
        args=args,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


# ---- setup_logging ----


@pytest.mark.parametrize(
    ("name", "expected"),
    [("debug", logging.DEBUG), ("warning", logging.WARNING), ("bogus", logging.INFO)],
)
def test_setup_logging_sets_root_level(name: str, expected: int) -> None:
    setup_logging(name)
    assert logging.getLogger().level == expected


def test_setup_logging_quiets_noisy_libraries() -> None:
    setup_logging("debug")
    assert logging.getLogger("uvicorn").level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_setup_logging_selects_json_formatter() -> None:
    setup_logging("info", json_format=True)
    [handler] = logging.getLogger().handlers
    assert isinstance(handler.formatter, _JsonFormatter)
    setup_logging("info")


# ---- container format ----


def test_container_formatter_omits_location_below_warning() -> None:
    output = _ContainerFormatter().format(_record(logging.INFO, "recorded"))
    assert "recorded" in output
    assert "[cascade.py:" not in output


def test_container_formatter_adds_location_for_warning() -> None:
    output = _ContainerFormatter().format(_record(logging.WARNING, "orphan module"))
    assert "orphan module" in output
    assert "[cascade.py:42]" in output


def test_container_formatter_is_not_json() -> None:
    output = _ContainerFormatter().format(_record())
    with pytest.raises(json.JSONDecodeError):
        json.loads(output)


# ---- JSON format ----


def test_json_formatter_core_fields() -> None:
    parsed = json.loads(_JsonFormatter().format(_record(logging.INFO, "Hello %s", "world")))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "learnprogress.services.cascade"
    assert parsed["message"] == "Hello world"
    assert "timestamp" in parsed


def test_json_formatter_lifts_progress_context() -> None:
    record = _record(
        request_id="abc-123",
        learner_id="6f1c",
        activity_id="a-1",
        duration_ms=12.5,
    )
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "abc-123"
    assert parsed["learner_id"] == "6f1c"
    assert parsed["activity_id"] == "a-1"
    assert parsed["duration_ms"] == 12.5
    assert "module_id" not in parsed


def test_json_formatter_includes_exception() -> None:
    try:
        raise ValueError("boom")
    except ValueError:
        record = _record(logging.ERROR, "failed")
        record.exc_info = sys.exc_info()
        output = _JsonFormatter().format(record)

    assert "ValueError: boom" in json.loads(output)["exception"]


# ---- context ----


def test_context_filter_reads_context_vars() -> None:
    record = _record()
    request_token = request_id_var.set("req-1")
    learner_token = learner_id_var.set("learner-1")
    try:
        _ContextFilter().filter(record)
    finally:
        learner_id_var.reset(learner_token)
        request_id_var.reset(request_token)
    assert record.request_id == "req-1"  # type: ignore[attr-defined]
    assert record.learner_id == "learner-1"  # type: ignore[attr-defined]


def test_context_filter_keeps_explicit_extra() -> None:
    record = _record(learner_id="from-extra")
    token = learner_id_var.set("from-context")
    try:
        _ContextFilter().filter(record)
    finally:
        learner_id_var.reset(token)
    assert record.learner_id == "from-extra"  # type: ignore[attr-defined]


def test_container_formatter_appends_context_pairs() -> None:
    record = _record(logging.INFO, "recorded", request_id="req-1", learner_id="l-1")
    output = _ContainerFormatter().format(record)
    assert output.endswith("recorded  request_id=req-1 learner_id=l-1")
