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

"""Base exception hierarchy for :mod:`structgen`."""

from __future__ import annotations

from collections.abc import Sequence


class StructgenError(Exception):
    """Base class for all structgen exceptions.

    Every failure raised by schema derivation, decoding, projection or
    streaming reconstruction derives from this class, so callers can catch
    library errors with a single handler while standard Python exceptions
    propagate normally.

    Example:
        Catch any structgen-specific error::

            try:
                report = decode_json(text, Report)
            except StructgenError as e:
                logger.error("Structured output rejected: %s", e)

    Note:
        Subclasses also inherit from the closest builtin exception type
        (``ValueError``, ``TypeError``, ``RuntimeError``) so existing
        handlers keep working.
    """


class SchemaDefinitionError(StructgenError, TypeError):
    """Raised when a type declaration or constraint cannot form a schema.

    Raised once, at construction time, for declarations such as arrays of
    optional elements, constraints applied to the wrong schema kind, a
    constraint applied to a union, or a union case that declares the reserved
    ``type`` field.
    """


class InvalidJSONError(StructgenError, ValueError):
    """Raised when text is not well-formed JSON."""

    def __init__(self, message: str, *, text: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.text = text


class KindMismatchError(StructgenError, TypeError):
    """Raised when a content node has a different kind than required.

    Carries the ``expected`` and ``actual`` kind names plus the JSON path of
    the offending node (``$`` is the root).
    """

    def __init__(self, expected: str, actual: str, *, path: str = "$") -> None:
        super().__init__(f"{path}: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual
        self.path = path


class MissingPropertyError(StructgenError, ValueError):
    """Raised when a required object property is absent."""

    def __init__(self, name: str, *, path: str = "$") -> None:
        super().__init__(f"{path}: missing required property {name!r}")
        self.name = name
        self.path = path


class UnknownDiscriminatorError(StructgenError, ValueError):
    """Raised when a union discriminator or enum value matches no case."""

    def __init__(
        self,
        value: str,
        *,
        path: str = "$",
        expected: Sequence[str] = (),
    ) -> None:
        message = f"{path}: unknown discriminator {value!r}"
        if expected:
            message = f"{message} (expected one of {', '.join(expected)})"
        super().__init__(message)
        self.value = value
        self.path = path
        self.expected = tuple(expected)


class IncompleteResultError(StructgenError, RuntimeError):
    """Raised when a stream ends without a complete, decodable result.

    ``missing`` lists the required property names that never received a value
    when that is known.
    """

    def __init__(self, message: str, *, missing: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.message = message
        self.missing = tuple(missing)


class UnprojectableSchemaError(StructgenError, ValueError):
    """Raised when a schema cannot be expressed in a backend's grammar."""

    def __init__(self, reason: str, *, backend: str) -> None:
        super().__init__(f"{backend}: {reason}")
        self.reason = reason
        self.backend = backend


__all__ = [
    "IncompleteResultError",
    "InvalidJSONError",
    "KindMismatchError",
    "MissingPropertyError",
    "SchemaDefinitionError",
    "StructgenError",
    "UnknownDiscriminatorError",
    "UnprojectableSchemaError",
]
