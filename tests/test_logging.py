# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for structured logging helpers."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from io import StringIO

import pytest

from structgen.logging import (
    StructuredLogger,
    _coerce_level,  # pyright: ignore[reportPrivateUsage]
    configure_logging,
    get_logger,
)

pytestmark = pytest.mark.core


class _CaptureHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@contextmanager
def _capture(logger: logging.Logger) -> Iterator[list[logging.LogRecord]]:
    handler = _CaptureHandler()
    logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture(autouse=True)
def reset_logging_state() -> Iterator[None]:
    package = logging.getLogger("structgen")
    root = logging.getLogger()
    original_handlers = list(package.handlers)
    original_level = package.level
    original_root_handlers = list(root.handlers)
    try:
        yield
    finally:
        for handler in package.handlers:
            if handler not in original_handlers:
                handler.close()
        package.handlers = original_handlers
        package.setLevel(original_level)
        root.handlers = original_root_handlers


def _installed() -> list[logging.Handler]:
    return [
        handler
        for handler in logging.getLogger("structgen").handlers
        if getattr(handler, "_structgen_handler", False)
    ]


def test_records_carry_event_and_bound_context() -> None:
    logger = get_logger("tests.logging", context={"component": "codec"}).bind(
        target="Person"
    )
    logger.logger.setLevel(logging.DEBUG)

    with _capture(logger.logger) as records:
        logger.debug("decoded", event="codec.decoded", context={"fields": 3})

    assert len(records) == 1
    record = records[0]
    assert getattr(record, "event") == "codec.decoded"
    assert getattr(record, "context") == {
        "component": "codec",
        "target": "Person",
        "fields": 3,
    }
    assert record.getMessage() == "decoded"


def test_bind_returns_a_new_adapter() -> None:
    base = get_logger("tests.logging.bind", context={"a": 1})
    bound = base.bind(b=2)

    assert isinstance(bound, StructuredLogger)
    assert base.extra == {"a": 1}
    assert bound.extra == {"a": 1, "b": 2}
    assert bound.logger is base.logger


def test_event_may_travel_in_extra() -> None:
    logger = get_logger("tests.logging.extra")
    logger.logger.setLevel(logging.INFO)

    with _capture(logger.logger) as records:
        logger.info("none-extra", event="tests.none", extra=None)
        logger.info("with-extra", extra={"event": "tests.extra", "count": 2})

    assert [getattr(record, "event") for record in records] == [
        "tests.none",
        "tests.extra",
    ]
    assert getattr(records[0], "context") == {}
    assert getattr(records[1], "context") == {"count": 2}


def test_logger_override_is_used() -> None:
    override = logging.getLogger("override")

    logger = get_logger("ignored", logger_override=override, context={"plain": True})

    assert logger.logger is override
    assert logger.extra == {"plain": True}


def test_records_require_an_event() -> None:
    logger = get_logger("tests.logging.missing")
    logger.logger.setLevel(logging.INFO)

    with pytest.raises(TypeError, match="event"):
        logger.info("missing-event", extra={"detail": True})


def test_context_must_be_a_mapping() -> None:
    logger = get_logger("tests.logging.context")
    logger.logger.setLevel(logging.INFO)

    with pytest.raises(TypeError, match="context"):
        logger.info("bad", event="tests.bad", context=["not", "a", "mapping"])


def test_library_is_silent_until_configured(caplog: pytest.LogCaptureFixture) -> None:
    logger = get_logger("structgen.tests.quiet")

    with caplog.at_level(logging.WARNING, logger="structgen"):
        logger.debug("hidden", event="tests.hidden")

    assert caplog.records == []


def test_configure_logging_leaves_root_and_host_handlers_alone() -> None:
    root = logging.getLogger()
    root_handler = logging.NullHandler()
    root.handlers = [root_handler]
    host_handler = logging.NullHandler()
    package = logging.getLogger("structgen")
    package.addHandler(host_handler)

    configure_logging(level="DEBUG", json_mode=True, env={})

    assert root.handlers == [root_handler]
    assert host_handler in package.handlers
    assert len(_installed()) == 1
    assert package.level == logging.DEBUG


def test_configure_logging_is_idempotent_unless_forced() -> None:
    configure_logging(env={})
    first = _installed()

    configure_logging(level="ERROR", env={})
    assert _installed() == first
    assert logging.getLogger("structgen").level == logging.ERROR

    configure_logging(json_mode=True, force=True, env={})
    replaced = _installed()
    assert len(replaced) == 1
    assert replaced != first
    assert type(replaced[0].formatter).__name__ == "_JsonFormatter"


def test_configure_logging_reads_environment() -> None:
    configure_logging(
        force=True,
        env={"STRUCTGEN_LOG_FORMAT": "JSON", "STRUCTGEN_LOG_LEVEL": "warning"},
    )

    handlers = _installed()
    assert len(handlers) == 1
    assert type(handlers[0].formatter).__name__ == "_JsonFormatter"
    assert logging.getLogger("structgen").level == logging.WARNING


def test_configure_logging_accepts_integer_level() -> None:
    configure_logging(level=logging.ERROR, force=True, env={})

    assert logging.getLogger("structgen").level == logging.ERROR


def test_text_mode_appends_event_and_context(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    stream = StringIO()
    monkeypatch.setattr(sys, "stderr", stream)
    configure_logging(force=True, env={})

    logger = get_logger("structgen.tests.text", context={"component": "codec"})
    logger.info("decoded", event="codec.decoded", context={"path": "$.age"})
    _installed()[0].flush()

    line = stream.getvalue().strip()
    assert " INFO structgen.tests.text decoded [codec.decoded] " in line
    assert line.endswith("component='codec' path='$.age'")


def test_json_mode_emits_one_object_per_record(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    stream = StringIO()
    monkeypatch.setattr(sys, "stderr", stream)
    configure_logging(json_mode=True, force=True, env={})

    logger = get_logger("structgen.tests.json").bind(component="projection")
    logger.info(
        "projected",
        event="projection.complete",
        context={"backend": "openai", "schema": object()},
    )
    _installed()[0].flush()

    payload = json.loads(stream.getvalue().strip())
    assert payload["event"] == "projection.complete"
    assert payload["context"]["component"] == "projection"
    assert payload["context"]["backend"] == "openai"
    assert payload["context"]["schema"].startswith("<object object")
    assert payload["message"] == "projected"
    assert payload["logger"] == "structgen.tests.json"
    assert payload["level"] == "INFO"


def test_json_formatter_includes_exception_text() -> None:
    configure_logging(json_mode=True, force=True, env={})
    handler = _installed()[0]

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        exc_info = sys.exc_info()

    record = logging.getLogger("structgen").makeRecord(
        "structgen.tests.error",
        logging.ERROR,
        __file__,
        0,
        "failed",
        (),
        exc_info,
        extra={"event": "tests.error", "context": {}},
    )
    payload = json.loads(handler.format(record))

    assert "RuntimeError: boom" in payload["exc_info"]
    assert "context" not in payload


@pytest.mark.parametrize(
    ("level", "expected"),
    [
        (None, logging.INFO),
        (logging.DEBUG, logging.DEBUG),
        ("debug", logging.DEBUG),
        ("CRITICAL", logging.CRITICAL),
    ],
)
def test_coerce_level(level: int | str | None, expected: int) -> None:
    assert _coerce_level(level) == expected


def test_coerce_level_rejects_unknown_names() -> None:
    with pytest.raises(TypeError, match="Unknown log level"):
        _coerce_level("loud")
