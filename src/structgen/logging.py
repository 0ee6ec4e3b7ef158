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

"""Structured logging helpers for :mod:`structgen`.

Library modules obtain a :class:`StructuredLogger` through :func:`get_logger`
and emit records with a dotted ``event`` name plus a ``context`` mapping::

    logger = get_logger(__name__, context={"component": "projection"})
    logger.debug(
        "Projected schema.",
        event="projection.complete",
        context={"backend": "openai", "definitions": 2},
    )

Nothing is printed until the host application configures logging, either
itself or through :func:`configure_logging`.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Mapping, MutableMapping
from datetime import UTC, datetime
from typing import Any, cast, override

__all__ = [
    "StructuredLogger",
    "configure_logging",
    "get_logger",
]

_PACKAGE_LOGGER = "structgen"
_HANDLER_MARKER = "_structgen_handler"
_LOG_LEVEL_ENV = "STRUCTGEN_LOG_LEVEL"
_LOG_FORMAT_ENV = "STRUCTGEN_LOG_FORMAT"
_LEVEL_NAMES = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}


class StructuredLogger(logging.LoggerAdapter[logging.Logger]):
    """Logger adapter enforcing an ``event`` name and a ``context`` payload."""

    def __init__(
        self,
        logger: logging.Logger,
        *,
        context: Mapping[str, object] | None = None,
    ) -> None:
        base_context = dict(context) if context is not None else {}
        super().__init__(logger, base_context)

    def bind(self, **context: object) -> StructuredLogger:
        """Return a new adapter with ``context`` merged into the baseline payload."""

        base_extra = cast(Mapping[str, object], self.extra)
        merged: dict[str, object] = {**dict(base_extra), **context}
        return type(self)(self.logger, context=merged)

    @override
    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra_obj = kwargs.get("extra")
        if extra_obj is None:
            extra_obj = {}
            kwargs["extra"] = extra_obj
        if not isinstance(extra_obj, MutableMapping):
            raise TypeError(
                "Structured logs require a mutable mapping for extra context."
            )
        extra_mapping = cast(MutableMapping[str, object], extra_obj)

        context_payload: dict[str, object] = dict(
            cast(Mapping[str, object], self.extra)
        )
        inline_context = kwargs.pop("context", None)
        if inline_context is not None:
            if not isinstance(inline_context, Mapping):
                raise TypeError("context must be a mapping when provided.")
            context_payload.update(cast(Mapping[str, object], inline_context))

        event_obj = kwargs.pop("event", None)
        if event_obj is None:
            event_obj = extra_mapping.pop("event", None)
        if not isinstance(event_obj, str):
            raise TypeError("Structured logs require an 'event' field.")

        for key in tuple(extra_mapping.keys()):
            if key != "event":
                context_payload[key] = extra_mapping.pop(key)

        extra_mapping.clear()
        extra_mapping.update({"event": event_obj, "context": context_payload})
        return msg, kwargs


def get_logger(
    name: str,
    *,
    logger_override: logging.Logger | None = None,
    context: Mapping[str, object] | None = None,
) -> StructuredLogger:
    """Return a :class:`StructuredLogger` scoped to ``name``.

    ``logger_override`` swaps in a caller-supplied logger, which tests use to
    capture records without touching the module hierarchy.
    """

    base_logger = (
        logger_override if logger_override is not None else logging.getLogger(name)
    )
    return StructuredLogger(base_logger, context=context)


def configure_logging(
    *,
    level: int | str | None = None,
    json_mode: bool | None = None,
    env: Mapping[str, str] | None = None,
    force: bool = False,
) -> None:
    """Attach a stderr handler to the ``structgen`` logger.

    ``level`` and ``json_mode`` can be supplied directly or via the
    ``STRUCTGEN_LOG_LEVEL`` and ``STRUCTGEN_LOG_FORMAT`` environment variables
    (``json`` enables structured output, ``text`` keeps the plain formatter).

    Only the package logger is touched; the root logger and handlers owned by
    the host application are left alone. Calling again adjusts the level and
    keeps the installed handler unless ``force=True`` replaces it.
    """

    env = env if env is not None else os.environ

    resolved_level = _coerce_level(level or env.get(_LOG_LEVEL_ENV) or logging.INFO)

    if json_mode is None:
        format_value = env.get(_LOG_FORMAT_ENV)
        json_mode = format_value is not None and format_value.lower() == "json"

    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    package_logger.setLevel(resolved_level)
    installed = [
        handler
        for handler in package_logger.handlers
        if getattr(handler, _HANDLER_MARKER, False)
    ]
    if installed and not force:
        return
    for handler in installed:
        package_logger.removeHandler(handler)
        handler.close()

    handler = logging.StreamHandler(sys.stderr)
    setattr(handler, _HANDLER_MARKER, True)
    handler.setFormatter(_JsonFormatter() if json_mode else _TextFormatter())
    package_logger.addHandler(handler)


class _TextFormatter(logging.Formatter):
    """Formatter that appends the event and ``key=value`` context to each line."""

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s %(levelname)s %(name)s %(message)s", "%Y-%m-%d %H:%M:%S"
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        event = getattr(record, "event", None)
        if event is not None:
            line = f"{line} [{event}]"
        context = getattr(record, "context", None)
        if context:
            pairs = " ".join(f"{key}={value!r}" for key, value in context.items())
            line = f"{line} {pairs}"
        return line


class _JsonFormatter(logging.Formatter):
    """Formatter that renders structured records as compact JSON."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        event = getattr(record, "event", None)
        if event is not None:
            payload["event"] = event
        context = getattr(record, "context", None)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=repr, separators=(",", ":"))


def _coerce_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        try:
            return _LEVEL_NAMES[level.upper()]
        except KeyError:
            raise TypeError(f"Unknown log level: {level!r}") from None
    return logging.INFO
